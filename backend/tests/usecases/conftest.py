from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, Optional
from zoneinfo import ZoneInfo

import pytest
from seatbook.models import Reservation, ReservationStatus, Seat
from seatbook.utils.clock import FixedClock

KST = ZoneInfo("Asia/Seoul")
TODAY = date(2025, 3, 10)


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def kst(hour: int, minute: int = 0, day: date = TODAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=KST)


class FakeStore:
    """Shared in-memory rows behind the fake seat and reservation repositories."""

    def __init__(self) -> None:
        self.seats: Dict[int, Seat] = {}
        self.reservations: Dict[int, Reservation] = {}
        self._next_id = 1
        # Number of upcoming compare-and-set writes that lose the race.
        self.stale_applies = 0
        self.apply_calls = 0
        # Called right after an insert, before re-verification.
        self.after_insert: Optional[Callable[[Reservation], None]] = None
        # Row locks taken, in order, as ("seat", id) or ("reservation", id).
        self.lock_log: List[tuple[str, int]] = []

    def add_seat(self, seat_id: int, *, is_fixed: bool = False, room: str = "901") -> Seat:
        now = _utc_now_naive()
        seat = Seat(id=seat_id, room=room, is_fixed=is_fixed, created_at=now, updated_at=now)
        self.seats[seat_id] = seat
        return seat

    def add_reservation(
        self,
        *,
        seat_id: int,
        user_id: int,
        started_at: int,
        ended_at: int,
        ref_date: date = TODAY,
        status: ReservationStatus = ReservationStatus.ACTIVE,
        checkout_at: Optional[datetime] = None,
    ) -> Reservation:
        now = _utc_now_naive()
        reservation = Reservation(
            id=self._next_id,
            seat_id=seat_id,
            user_id=user_id,
            ref_date=ref_date,
            started_at=started_at,
            ended_at=ended_at,
            status=status,
            checkout_at=checkout_at,
            extended_at=None,
            extended_count=0,
            version=1,
            created_at=now,
            updated_at=now,
        )
        self._next_id += 1
        self.reservations[reservation.id] = reservation
        return reservation


class FakeSeatRepo:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def get(self, seat_id: int) -> Optional[Seat]:
        return self.store.seats.get(seat_id)

    async def get_for_update(self, seat_id: int) -> Optional[Seat]:
        self.store.lock_log.append(("seat", seat_id))
        return self.store.seats.get(seat_id)

    async def list_all(self) -> List[Seat]:
        return [self.store.seats[key] for key in sorted(self.store.seats)]


class FakeReservationRepo:
    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self._pending: Optional[List[int]] = None

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        return self.store.reservations.get(reservation_id)

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        self.store.lock_log.append(("reservation", reservation_id))
        return self.store.reservations.get(reservation_id)

    async def user_has_reservation_on(
        self,
        user_id: int,
        ref_date: date,
        *,
        exclude_id: int | None = None,
        lock: bool = False,
    ) -> bool:
        return any(
            r.user_id == user_id
            and r.ref_date == ref_date
            and r.status != ReservationStatus.CANCELLED
            and r.id != exclude_id
            for r in self.store.reservations.values()
        )

    async def list_occupying(self, seat_id: int, ref_date: date, *, lock: bool = False) -> List[Reservation]:
        rows = [
            r
            for r in self.store.reservations.values()
            if r.seat_id == seat_id
            and r.ref_date == ref_date
            and (
                r.status == ReservationStatus.ACTIVE
                or (r.status == ReservationStatus.EXPIRED and r.checkout_at is not None)
            )
        ]
        return sorted(rows, key=lambda r: r.started_at)

    async def create(
        self,
        *,
        seat_id: int,
        user_id: int,
        ref_date: date,
        started_at: int,
        ended_at: int,
        created_at: datetime,
    ) -> Reservation:
        reservation = self.store.add_reservation(
            seat_id=seat_id,
            user_id=user_id,
            ref_date=ref_date,
            started_at=started_at,
            ended_at=ended_at,
        )
        reservation.created_at = created_at
        if self._pending is not None:
            self._pending.append(reservation.id)
        if self.store.after_insert is not None:
            self.store.after_insert(reservation)
        return reservation

    async def apply(
        self,
        reservation_id: int,
        *,
        expected_version: int,
        values: Mapping[str, Any],
        updated_at: datetime,
    ) -> Optional[Reservation]:
        self.store.apply_calls += 1
        if self.store.stale_applies > 0:
            self.store.stale_applies -= 1
            return None
        reservation = self.store.reservations[reservation_id]
        if reservation.version != expected_version:
            return None
        for key, value in values.items():
            setattr(reservation, key, value)
        reservation.version += 1
        reservation.updated_at = updated_at
        return reservation

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        self._pending = []
        try:
            yield
        except Exception:
            for key in self._pending:
                del self.store.reservations[key]
            raise
        finally:
            self._pending = None

    async def list_by_user(self, user_id: int, ref_date: date | None = None) -> List[Reservation]:
        return [
            r
            for r in self.store.reservations.values()
            if r.user_id == user_id and (ref_date is None or r.ref_date == ref_date)
        ]

    async def get_for_user(self, reservation_id: int, user_id: int) -> Optional[Reservation]:
        reservation = self.store.reservations.get(reservation_id)
        if reservation is None or reservation.user_id != user_id:
            return None
        return reservation

    async def list_active_on(self, ref_date: date) -> List[Reservation]:
        rows = [
            r
            for r in self.store.reservations.values()
            if r.ref_date == ref_date and r.status == ReservationStatus.ACTIVE
        ]
        return sorted(rows, key=lambda r: (r.seat_id, r.started_at))


@pytest.fixture
def store() -> FakeStore:
    store = FakeStore()
    for seat_id in range(1, 6):
        store.add_seat(seat_id)
    return store


@pytest.fixture
def seat_repo(store: FakeStore) -> FakeSeatRepo:
    return FakeSeatRepo(store)


@pytest.fixture
def res_repo(store: FakeStore) -> FakeReservationRepo:
    return FakeReservationRepo(store)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def clock_at() -> Callable[..., FixedClock]:
    def _make(hour: int, minute: int = 0, day: date = TODAY) -> FixedClock:
        return FixedClock(kst(hour, minute, day))

    return _make
