from __future__ import annotations

from datetime import date, datetime
from typing import Any, AsyncContextManager, Mapping, Protocol

from ..models import Reservation, Seat


class SeatRepository(Protocol):
    async def get(self, seat_id: int) -> Seat | None: ...

    async def get_for_update(self, seat_id: int) -> Seat | None: ...

    async def list_all(self) -> list[Seat]: ...


class ReservationRepository(Protocol):
    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def user_has_reservation_on(
        self,
        user_id: int,
        ref_date: date,
        *,
        exclude_id: int | None = None,
        lock: bool = False,
    ) -> bool: ...

    async def list_occupying(
        self,
        seat_id: int,
        ref_date: date,
        *,
        lock: bool = False,
    ) -> list[Reservation]: ...

    async def create(
        self,
        *,
        seat_id: int,
        user_id: int,
        ref_date: date,
        started_at: int,
        ended_at: int,
        created_at: datetime,
    ) -> Reservation: ...

    async def apply(
        self,
        reservation_id: int,
        *,
        expected_version: int,
        values: Mapping[str, Any],
        updated_at: datetime,
    ) -> Reservation | None: ...

    def savepoint(self) -> AsyncContextManager[Any]: ...

    async def list_by_user(self, user_id: int, ref_date: date | None = None) -> list[Reservation]: ...

    async def get_for_user(self, reservation_id: int, user_id: int) -> Reservation | None: ...

    async def list_active_on(self, ref_date: date) -> list[Reservation]: ...


class CredentialVerifier(Protocol):
    async def verify(self, user_id: int, password: str) -> bool: ...
