from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_clock, get_current_user_id, get_session
from ..domain.errors import ReservationError
from ..infrastructure.repositories import SqlAlchemyReservationRepository, SqlAlchemySeatRepository
from ..schemas import ReservationRead, SeatAvailabilityRead, SeatRead
from ..usecases import seats as seat_usecase
from ..utils.clock import Clock
from .errors import to_http_exception

router = APIRouter(prefix="/seats", tags=["seats"], dependencies=[Depends(get_current_user_id)])


@router.get("", response_model=List[SeatRead])
async def list_seats(session: AsyncSession = Depends(get_session)) -> list[SeatRead]:
    seat_repo = SqlAlchemySeatRepository(session)
    seats = await seat_usecase.list_seats(seat_repo)
    return [SeatRead.from_db(seat=seat) for seat in seats]


@router.get("/{seat_id}/availability", response_model=SeatAvailabilityRead)
async def query_availability(
    seat_id: int = Path(..., ge=1),
    ref_date: Optional[date] = Query(default=None, description="Day to inspect (defaults to today)"),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> SeatAvailabilityRead:
    seat_repo = SqlAlchemySeatRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        availability = await seat_usecase.query_availability(
            seat_repo,
            res_repo,
            clock=clock,
            seat_id=seat_id,
            ref_date=ref_date,
        )
    except ReservationError as exc:
        raise to_http_exception(exc) from exc
    return SeatAvailabilityRead(
        seat_id=availability.seat.id,
        ref_date=availability.ref_date,
        occupied_slots=availability.occupied_slots,
        reservations=[ReservationRead.from_db(reservation=res) for res in availability.reservations],
    )
