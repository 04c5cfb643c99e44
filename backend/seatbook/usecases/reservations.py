import logging
from datetime import date
from typing import Awaitable, Callable, TypeVar

from ..domain.errors import ConcurrentModificationError, NotFoundError, StaleReservationError
from ..domain.overlap import has_conflict, occupied_intervals
from ..domain.repositories import ReservationRepository, SeatRepository
from ..domain.services import (
    CreationSnapshot,
    Departure,
    Extension,
    ensure_active_owner,
    plan_departure,
    plan_extension,
    validate_creation,
)
from ..domain.slots import validate_span
from ..models import Reservation, Seat
from ..utils.clock import Clock
from ..utils.time import normalize_ref_date, to_utc_naive

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _retry_once(operation: Callable[[], Awaitable[T]], *, action: str) -> T:
    """Run `operation`; on a lost write race re-run it once from a fresh read."""
    try:
        return await operation()
    except StaleReservationError:
        logger.info("write conflict during %s, retrying with a fresh read", action)
    try:
        return await operation()
    except StaleReservationError as exc:
        logger.warning("write conflict during %s persisted after retry", action)
        raise ConcurrentModificationError() from exc


async def create_reservation(
    seat_repo: SeatRepository,
    res_repo: ReservationRepository,
    *,
    clock: Clock,
    seat_id: int,
    user_id: int,
    start_hour: int,
    end_hour: int,
) -> tuple[Reservation, Seat]:
    validate_span(start_hour, end_hour)
    now = clock.now()
    ref_date = normalize_ref_date(now)

    async def attempt() -> tuple[Reservation, Seat]:
        seat = await seat_repo.get_for_update(seat_id)
        if seat is None:
            raise NotFoundError("seat not found")

        snapshot = CreationSnapshot(
            seat_is_fixed=seat.is_fixed,
            user_has_reservation_today=await res_repo.user_has_reservation_on(user_id, ref_date),
            occupied=tuple(occupied_intervals(await res_repo.list_occupying(seat_id, ref_date))),
        )
        validate_creation(snapshot, start_hour=start_hour, end_hour=end_hour)

        async with res_repo.savepoint():
            reservation = await res_repo.create(
                seat_id=seat.id,
                user_id=user_id,
                ref_date=ref_date,
                started_at=start_hour,
                ended_at=end_hour,
                created_at=to_utc_naive(now),
            )
            await _reverify_creation(res_repo, reservation)
        return reservation, seat

    return await _retry_once(attempt, action="create")


async def _reverify_creation(res_repo: ReservationRepository, reservation: Reservation) -> None:
    """Locking re-read after insert; a row slipped in by a concurrent booking rolls the savepoint back."""
    if await res_repo.user_has_reservation_on(
        reservation.user_id,
        reservation.ref_date,
        exclude_id=reservation.id,
        lock=True,
    ):
        raise StaleReservationError("concurrent reservation for the same user and day")
    others = occupied_intervals(
        await res_repo.list_occupying(reservation.seat_id, reservation.ref_date, lock=True),
        exclude_id=reservation.id,
    )
    if has_conflict(others, reservation.started_at, reservation.ended_at):
        raise StaleReservationError("concurrent reservation overlapping the same hours")


async def depart_reservation(
    res_repo: ReservationRepository,
    *,
    clock: Clock,
    reservation_id: int,
    user_id: int,
) -> tuple[Reservation, Departure]:
    now = clock.now()

    async def attempt() -> tuple[Reservation, Departure]:
        reservation = ensure_active_owner(await res_repo.get_for_update(reservation_id), user_id=user_id)
        departure = plan_departure(reservation, user_id=user_id, now=now)
        updated = await res_repo.apply(
            reservation.id,
            expected_version=reservation.version,
            values=departure.values(),
            updated_at=to_utc_naive(now),
        )
        if updated is None:
            raise StaleReservationError("reservation changed while departing")
        return updated, departure

    return await _retry_once(attempt, action="depart")


async def extend_reservation(
    seat_repo: SeatRepository,
    res_repo: ReservationRepository,
    *,
    clock: Clock,
    reservation_id: int,
    user_id: int,
    extra_hours: int,
    window_minutes: int = 20,
    max_extension_count: int = 3,
) -> tuple[Reservation, Extension]:
    now = clock.now()

    async def attempt() -> tuple[Reservation, Extension]:
        current = ensure_active_owner(await res_repo.get(reservation_id), user_id=user_id)
        # Seat row before reservation rows, the order create_reservation locks in.
        await seat_repo.get_for_update(current.seat_id)
        reservation = ensure_active_owner(await res_repo.get_for_update(reservation_id), user_id=user_id)
        occupied = occupied_intervals(
            await res_repo.list_occupying(reservation.seat_id, reservation.ref_date, lock=True),
            exclude_id=reservation.id,
        )
        extension = plan_extension(
            reservation,
            user_id=user_id,
            extra_hours=extra_hours,
            now=now,
            occupied=tuple(occupied),
            window_minutes=window_minutes,
            max_extension_count=max_extension_count,
        )
        updated = await res_repo.apply(
            reservation.id,
            expected_version=reservation.version,
            values=extension.values(),
            updated_at=to_utc_naive(now),
        )
        if updated is None:
            raise StaleReservationError("reservation changed while extending")
        return updated, extension

    return await _retry_once(attempt, action="extend")


async def list_user_reservations(
    res_repo: ReservationRepository,
    *,
    user_id: int,
    ref_date: date | None = None,
) -> list[Reservation]:
    return await res_repo.list_by_user(user_id, ref_date)


async def get_user_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    user_id: int,
) -> Reservation | None:
    return await res_repo.get_for_user(reservation_id, user_id)
