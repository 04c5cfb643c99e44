from dataclasses import dataclass
from datetime import date
from typing import Dict, List

from ..domain.errors import NotFoundError
from ..domain.overlap import occupied_intervals, occupied_slots
from ..domain.repositories import ReservationRepository, SeatRepository
from ..models import Reservation, Seat
from ..utils.clock import Clock
from ..utils.time import normalize_ref_date


@dataclass(frozen=True)
class SeatAvailability:
    seat: Seat
    ref_date: date
    occupied_slots: List[int]
    reservations: List[Reservation]


async def query_availability(
    seat_repo: SeatRepository,
    res_repo: ReservationRepository,
    *,
    clock: Clock,
    seat_id: int,
    ref_date: date | None = None,
) -> SeatAvailability:
    seat = await seat_repo.get(seat_id)
    if seat is None:
        raise NotFoundError("seat not found")
    day = ref_date or normalize_ref_date(clock.now())
    reservations = await res_repo.list_occupying(seat_id, day)
    return SeatAvailability(
        seat=seat,
        ref_date=day,
        occupied_slots=occupied_slots(occupied_intervals(reservations)),
        reservations=reservations,
    )


async def list_seats(seat_repo: SeatRepository) -> List[Seat]:
    return await seat_repo.list_all()


async def list_active_by_seat(
    res_repo: ReservationRepository,
    *,
    clock: Clock,
    ref_date: date | None = None,
) -> tuple[date, Dict[int, List[Reservation]]]:
    day = ref_date or normalize_ref_date(clock.now())
    grouped: Dict[int, List[Reservation]] = {}
    for reservation in await res_repo.list_active_on(day):
        grouped.setdefault(reservation.seat_id, []).append(reservation)
    return day, grouped
