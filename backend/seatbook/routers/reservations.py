from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_clock, get_current_user_id, get_session
from ..domain.errors import ReservationError
from ..domain.services import Departure, Extension
from ..infrastructure.repositories import (
    SqlAlchemyCredentialVerifier,
    SqlAlchemyReservationRepository,
    SqlAlchemySeatRepository,
)
from ..infrastructure.transactions import run_in_transaction
from ..models import Reservation, ReservationStatus, Seat
from ..schemas import (
    ActiveReservationsRead,
    ReservationCreate,
    ReservationDepart,
    ReservationExtend,
    ReservationRead,
)
from ..usecases import reservations as reservation_usecase
from ..usecases import seats as seat_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.clock import Clock
from .errors import audit_failure, invalid_credentials, to_http_exception

router = APIRouter(prefix="", tags=["reservations"])


@router.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    clock: Clock = Depends(get_clock),
) -> ReservationRead:
    seat_repo = SqlAlchemySeatRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)

    async def work() -> tuple[Reservation, Seat]:
        return await reservation_usecase.create_reservation(
            seat_repo,
            res_repo,
            clock=clock,
            seat_id=payload.seat_id,
            user_id=user_id,
            start_hour=payload.start_hour,
            end_hour=payload.end_hour,
        )

    try:
        reservation, _ = await run_in_transaction(session, work, action="create")
    except ReservationError as exc:
        raise to_http_exception(exc) from exc

    try:
        emit_audit_log(
            action="reservation.created",
            initiator="user",
            reservation_id=reservation.id,
            seat_id=reservation.seat_id,
            user_id=reservation.user_id,
            ref_date=reservation.ref_date,
            started_at=reservation.started_at,
            ended_at=reservation.ended_at,
            status_from=None,
            status_to=reservation.status,
            version=reservation.version,
        )
    except RuntimeError as exc:
        raise audit_failure(exc) from exc
    return ReservationRead.from_db(reservation=reservation)


@router.get("/reservations/active", response_model=ActiveReservationsRead)
async def list_active_reservations(
    ref_date: Optional[date] = Query(default=None, description="Day to inspect (defaults to today)"),
    session: AsyncSession = Depends(get_session),
    _: int = Depends(get_current_user_id),
    clock: Clock = Depends(get_clock),
) -> ActiveReservationsRead:
    res_repo = SqlAlchemyReservationRepository(session)
    day, grouped = await seat_usecase.list_active_by_seat(res_repo, clock=clock, ref_date=ref_date)
    return ActiveReservationsRead(
        ref_date=day,
        total=sum(len(items) for items in grouped.values()),
        by_seat={
            seat_id: [ReservationRead.from_db(reservation=res) for res in items] for seat_id, items in grouped.items()
        },
    )


@router.get("/me/reservations", response_model=List[ReservationRead])
async def list_my_reservations(
    ref_date: Optional[date] = Query(default=None),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[ReservationRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    rows = await reservation_usecase.list_user_reservations(res_repo, user_id=user_id, ref_date=ref_date)
    return [ReservationRead.from_db(reservation=res) for res in rows]


@router.get("/me/reservations/{reservation_id}", response_model=ReservationRead)
async def get_my_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    reservation = await reservation_usecase.get_user_reservation(
        res_repo, reservation_id=reservation_id, user_id=user_id
    )
    if reservation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "not_found", "message": "reservation not found"},
        )
    return ReservationRead.from_db(reservation=reservation)


@router.post("/me/reservations/{reservation_id}/depart", response_model=ReservationRead)
async def depart_reservation(
    payload: ReservationDepart,
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    clock: Clock = Depends(get_clock),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    verifier = SqlAlchemyCredentialVerifier(session)

    async def work() -> tuple[Reservation, Departure]:
        if not await verifier.verify(user_id, payload.password):
            raise invalid_credentials()
        return await reservation_usecase.depart_reservation(
            res_repo,
            clock=clock,
            reservation_id=reservation_id,
            user_id=user_id,
        )

    try:
        updated, departure = await run_in_transaction(session, work, action="depart")
    except ReservationError as exc:
        raise to_http_exception(exc) from exc

    action = "reservation.cancelled" if departure.status == ReservationStatus.CANCELLED else "reservation.expired"
    try:
        emit_audit_log(
            action=action,
            initiator="user",
            reservation_id=updated.id,
            seat_id=updated.seat_id,
            user_id=updated.user_id,
            ref_date=updated.ref_date,
            started_at=updated.started_at,
            ended_at=updated.ended_at,
            status_from=ReservationStatus.ACTIVE,
            status_to=updated.status,
            version=updated.version,
            extra={"departure": departure.kind.value, "current_hour": departure.current_hour},
        )
    except RuntimeError as exc:
        raise audit_failure(exc) from exc
    return ReservationRead.from_db(reservation=updated)


@router.post("/me/reservations/{reservation_id}/extend", response_model=ReservationRead)
async def extend_reservation(
    payload: ReservationExtend,
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    clock: Clock = Depends(get_clock),
) -> ReservationRead:
    settings = get_settings()
    seat_repo = SqlAlchemySeatRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    verifier = SqlAlchemyCredentialVerifier(session)

    async def work() -> tuple[Reservation, Extension]:
        if not await verifier.verify(user_id, payload.password):
            raise invalid_credentials()
        return await reservation_usecase.extend_reservation(
            seat_repo,
            res_repo,
            clock=clock,
            reservation_id=reservation_id,
            user_id=user_id,
            extra_hours=payload.extra_hours,
            window_minutes=settings.extend_window_minutes,
            max_extension_count=settings.max_extension_count,
        )

    try:
        updated, extension = await run_in_transaction(session, work, action="extend")
    except ReservationError as exc:
        raise to_http_exception(exc) from exc

    try:
        emit_audit_log(
            action="reservation.extended",
            initiator="user",
            reservation_id=updated.id,
            seat_id=updated.seat_id,
            user_id=updated.user_id,
            ref_date=updated.ref_date,
            started_at=updated.started_at,
            ended_at=updated.ended_at,
            status_from=ReservationStatus.ACTIVE,
            status_to=updated.status,
            version=updated.version,
            extra={"extra_hours": extension.extra_hours, "extended_count": extension.extended_count},
        )
    except RuntimeError as exc:
        raise audit_failure(exc) from exc
    return ReservationRead.from_db(reservation=updated)
