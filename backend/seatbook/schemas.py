from datetime import date, datetime
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from .config import get_settings
from .models import Reservation, ReservationStatus, Seat
from .utils.time import get_zone, utc_naive_to_local


def _local(dt: Optional[datetime], tz: ZoneInfo) -> Optional[datetime]:
    return utc_naive_to_local(dt, tz) if dt is not None else None


class SeatRead(BaseModel):
    seat_id: int
    room: str
    is_fixed: bool

    @classmethod
    def from_db(cls, *, seat: Seat) -> "SeatRead":
        return cls(seat_id=seat.id, room=seat.room, is_fixed=seat.is_fixed)


class ReservationCreate(BaseModel):
    seat_id: int = Field(ge=1)
    # Bounds are enforced by validate_span.
    start_hour: int
    end_hour: int


class ReservationDepart(BaseModel):
    password: str = Field(min_length=1)


class ReservationExtend(BaseModel):
    password: str = Field(min_length=1)
    extra_hours: int


class ReservationRead(BaseModel):
    reservation_id: int
    seat_id: int
    user_id: int
    ref_date: date
    started_at: int
    ended_at: int
    status: ReservationStatus
    checkout_at: Optional[datetime] = None
    extended_at: Optional[datetime] = None
    extended_count: int = 0
    version: int
    created_at: datetime

    @classmethod
    def from_db(cls, *, reservation: Reservation, tz: Optional[ZoneInfo] = None) -> "ReservationRead":
        """Build the response with timestamps in `tz`, or the configured service timezone."""
        tz = tz or get_zone(get_settings().timezone)
        return cls(
            reservation_id=reservation.id,
            seat_id=reservation.seat_id,
            user_id=reservation.user_id,
            ref_date=reservation.ref_date,
            started_at=reservation.started_at,
            ended_at=reservation.ended_at,
            status=reservation.status,
            checkout_at=_local(reservation.checkout_at, tz),
            extended_at=_local(reservation.extended_at, tz),
            extended_count=reservation.extended_count,
            version=reservation.version,
            created_at=utc_naive_to_local(reservation.created_at, tz),
        )


class SeatAvailabilityRead(BaseModel):
    seat_id: int
    ref_date: date
    occupied_slots: List[int]
    reservations: List[ReservationRead]


class ActiveReservationsRead(BaseModel):
    ref_date: date
    total: int
    by_seat: Dict[int, List[ReservationRead]]
