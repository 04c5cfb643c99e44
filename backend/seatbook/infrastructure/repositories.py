from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Mapping, Optional

import bcrypt
from sqlalchemy import Select, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction

from ..domain.repositories import CredentialVerifier, ReservationRepository, SeatRepository
from ..models import Reservation, ReservationStatus, Seat, User


class SqlAlchemySeatRepository(SeatRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, seat_id: int) -> Seat | None:
        return await self.session.get(Seat, seat_id)

    async def get_for_update(self, seat_id: int) -> Seat | None:
        # Serialises bookings on the same seat for the rest of the transaction.
        result = await self.session.scalar(select(Seat).where(Seat.id == seat_id).with_for_update())
        return result if isinstance(result, Seat) else None

    async def list_all(self) -> List[Seat]:
        rows = await self.session.scalars(select(Seat).order_by(Seat.id))
        return list(rows.all())


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        return await self.session.get(Reservation, reservation_id)

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.id == reservation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def user_has_reservation_on(
        self,
        user_id: int,
        ref_date: date,
        *,
        exclude_id: int | None = None,
        lock: bool = False,
    ) -> bool:
        stmt = select(Reservation.id).where(
            Reservation.user_id == user_id,
            Reservation.ref_date == ref_date,
            Reservation.status != ReservationStatus.CANCELLED,
        )
        if exclude_id is not None:
            stmt = stmt.where(Reservation.id != exclude_id)
        if lock:
            stmt = stmt.with_for_update()
        return await self.session.scalar(stmt.limit(1)) is not None

    async def list_occupying(
        self,
        seat_id: int,
        ref_date: date,
        *,
        lock: bool = False,
    ) -> List[Reservation]:
        stmt: Select[tuple[Reservation]] = (
            select(Reservation)
            .where(
                Reservation.seat_id == seat_id,
                Reservation.ref_date == ref_date,
                or_(
                    Reservation.status == ReservationStatus.ACTIVE,
                    (Reservation.status == ReservationStatus.EXPIRED) & Reservation.checkout_at.is_not(None),
                ),
            )
            .order_by(Reservation.started_at)
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        rows = await self.session.scalars(stmt)
        return list(rows.all())

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
        reservation = Reservation(
            seat_id=seat_id,
            user_id=user_id,
            ref_date=ref_date,
            started_at=started_at,
            ended_at=ended_at,
            status=ReservationStatus.ACTIVE,
            extended_count=0,
            version=1,
            created_at=created_at,
            updated_at=created_at,
        )
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def apply(
        self,
        reservation_id: int,
        *,
        expected_version: int,
        values: Mapping[str, Any],
        updated_at: datetime,
    ) -> Optional[Reservation]:
        """Compare-and-set write; returns None when another writer bumped the version first."""
        stmt = (
            update(Reservation)
            .where(Reservation.id == reservation_id, Reservation.version == expected_version)
            .values(**values, version=Reservation.version + 1, updated_at=updated_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            return None
        refreshed = await self.session.scalar(
            select(Reservation).where(Reservation.id == reservation_id).execution_options(populate_existing=True)
        )
        return refreshed

    def savepoint(self) -> AsyncSessionTransaction:
        return self.session.begin_nested()

    async def list_by_user(self, user_id: int, ref_date: date | None = None) -> List[Reservation]:
        stmt = select(Reservation).where(Reservation.user_id == user_id)
        if ref_date is not None:
            stmt = stmt.where(Reservation.ref_date == ref_date)
        rows = await self.session.scalars(stmt.order_by(Reservation.ref_date.desc(), Reservation.started_at))
        return list(rows.all())

    async def get_for_user(self, reservation_id: int, user_id: int) -> Optional[Reservation]:
        stmt = select(Reservation).where(Reservation.id == reservation_id, Reservation.user_id == user_id)
        return await self.session.scalar(stmt)

    async def list_active_on(self, ref_date: date) -> List[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.ref_date == ref_date, Reservation.status == ReservationStatus.ACTIVE)
            .order_by(Reservation.seat_id, Reservation.started_at)
        )
        rows = await self.session.scalars(stmt)
        return list(rows.all())


class SqlAlchemyCredentialVerifier(CredentialVerifier):
    """Checks a plain password against the bcrypt hash stored for the user."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def verify(self, user_id: int, password: str) -> bool:
        password_hash = await self.session.scalar(select(User.password_hash).where(User.id == user_id))
        if not password_hash:
            return False
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
