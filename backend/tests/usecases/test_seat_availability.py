from datetime import date, datetime

import pytest
from seatbook.domain.errors import NotFoundError
from seatbook.models import ReservationStatus
from seatbook.usecases import reservations as reservation_uc
from seatbook.usecases import seats as uc


@pytest.mark.asyncio
async def test_availability_reflects_active_and_checked_out_hours(seat_repo, res_repo, clock_at, store, today) -> None:
    store.add_reservation(seat_id=2, user_id=1, started_at=9, ended_at=12)
    store.add_reservation(seat_id=2, user_id=2, started_at=14, ended_at=15, status=ReservationStatus.CANCELLED)
    store.add_reservation(seat_id=1, user_id=3, started_at=20, ended_at=21)

    availability = await uc.query_availability(seat_repo, res_repo, clock=clock_at(8), seat_id=2)
    assert availability.ref_date == today
    assert availability.occupied_slots == [0, 1, 2, 3]

    mine = next(iter(store.reservations.values()))
    await reservation_uc.depart_reservation(res_repo, clock=clock_at(10, 5), reservation_id=mine.id, user_id=1)

    availability = await uc.query_availability(seat_repo, res_repo, clock=clock_at(10, 6), seat_id=2)
    assert availability.occupied_slots == [0, 1]
    assert [r.status for r in availability.reservations] == [ReservationStatus.EXPIRED]


@pytest.mark.asyncio
async def test_availability_for_other_day_and_unknown_seat(seat_repo, res_repo, clock_at, store) -> None:
    other_day = date(2025, 3, 11)
    store.add_reservation(seat_id=1, user_id=1, started_at=23, ended_at=24, ref_date=other_day)

    availability = await uc.query_availability(seat_repo, res_repo, clock=clock_at(8), seat_id=1, ref_date=other_day)
    assert availability.occupied_slots == [14, 15]
    empty = await uc.query_availability(seat_repo, res_repo, clock=clock_at(8), seat_id=1)
    assert empty.occupied_slots == []

    with pytest.raises(NotFoundError):
        await uc.query_availability(seat_repo, res_repo, clock=clock_at(8), seat_id=42)


@pytest.mark.asyncio
async def test_expired_row_without_checkout_frees_its_hours(seat_repo, res_repo, clock_at, store) -> None:
    store.add_reservation(seat_id=4, user_id=1, started_at=9, ended_at=10, status=ReservationStatus.EXPIRED)
    store.add_reservation(
        seat_id=4,
        user_id=2,
        started_at=11,
        ended_at=11,
        status=ReservationStatus.EXPIRED,
        checkout_at=datetime(2025, 3, 10, 2, 30),
    )
    availability = await uc.query_availability(seat_repo, res_repo, clock=clock_at(12), seat_id=4)
    assert availability.occupied_slots == [2]


@pytest.mark.asyncio
async def test_list_seats_and_active_by_seat(seat_repo, res_repo, clock_at, store, today) -> None:
    assert [s.id for s in await uc.list_seats(seat_repo)] == [1, 2, 3, 4, 5]

    store.add_reservation(seat_id=2, user_id=1, started_at=13, ended_at=14)
    store.add_reservation(seat_id=2, user_id=2, started_at=9, ended_at=10)
    store.add_reservation(seat_id=5, user_id=3, started_at=9, ended_at=10)
    store.add_reservation(seat_id=5, user_id=4, started_at=11, ended_at=12, status=ReservationStatus.CANCELLED)

    day, grouped = await uc.list_active_by_seat(res_repo, clock=clock_at(8))
    assert day == today
    assert sorted(grouped) == [2, 5]
    assert [r.started_at for r in grouped[2]] == [9, 13]
    assert len(grouped[5]) == 1
