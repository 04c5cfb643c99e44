from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from typing import Any, Optional, Protocol, TypeVar

from ..models import ReservationStatus
from ..utils.time import hour_of_day, minute_of_day, to_utc_naive
from .errors import (
    DuplicateDailyReservationError,
    ExtendTooEarlyError,
    ForbiddenError,
    InvalidSpanError,
    InvalidStateError,
    NotFoundError,
    SeatNotBookableError,
    SlotConflictError,
)
from .overlap import OccupiedInterval, find_conflict
from .slots import EXTENSION_CHOICES, LAST_HOUR, validate_span


class ReservationRecord(Protocol):
    id: int
    user_id: int
    ref_date: date
    started_at: int
    ended_at: int
    status: ReservationStatus
    extended_count: int


R = TypeVar("R", bound=ReservationRecord)


class DepartureKind(StrEnum):
    BEFORE_WINDOW = "before_window"
    WITHIN_WINDOW = "within_window"
    AFTER_WINDOW = "after_window"


@dataclass(frozen=True)
class CreationSnapshot:
    seat_is_fixed: bool
    user_has_reservation_today: bool
    occupied: tuple[OccupiedInterval, ...]


@dataclass(frozen=True)
class Departure:
    kind: DepartureKind
    status: ReservationStatus
    ended_at: int
    checkout_at: datetime
    current_hour: int

    def values(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "ended_at": self.ended_at,
            "checkout_at": to_utc_naive(self.checkout_at),
        }


@dataclass(frozen=True)
class Extension:
    extra_hours: int
    ended_at: int
    extended_at: datetime
    extended_count: int
    remaining_minutes: int

    def values(self) -> dict[str, Any]:
        return {
            "ended_at": self.ended_at,
            "extended_at": to_utc_naive(self.extended_at),
            "extended_count": self.extended_count,
        }


def validate_creation(snapshot: CreationSnapshot, *, start_hour: int, end_hour: int) -> int:
    """
    Pure validation for a new booking: span shape, bookable seat, one booking per
    user per day, and no overlap with hours already occupied on the seat.
    Returns the span length in hours. Raises domain errors otherwise.
    """
    length = validate_span(start_hour, end_hour)
    if snapshot.seat_is_fixed:
        raise SeatNotBookableError()
    if snapshot.user_has_reservation_today:
        raise DuplicateDailyReservationError()
    conflict = find_conflict(snapshot.occupied, start_hour, end_hour)
    if conflict is not None:
        raise SlotConflictError(f"hours {conflict.start}-{conflict.end} are already reserved")
    return length


def ensure_active_owner(reservation: Optional[R], *, user_id: int) -> R:
    if reservation is None:
        raise NotFoundError()
    if reservation.status != ReservationStatus.ACTIVE:
        raise InvalidStateError(f"reservation is already {reservation.status.value}")
    if reservation.user_id != user_id:
        raise ForbiddenError()
    return reservation


def plan_departure(reservation: Optional[ReservationRecord], *, user_id: int, now: datetime) -> Departure:
    """Resolve a check-out into its terminal state.

    Leaving before the window starts cancels the booking outright. Leaving
    inside the window expires it and clips `ended_at` down to the hour in
    progress, so the later hours become bookable. Leaving after the window
    expires it with the full span kept. Window bounds are inclusive.
    """
    reservation = ensure_active_owner(reservation, user_id=user_id)
    current_hour = hour_of_day(now, reservation.ref_date)
    start, end = reservation.started_at, reservation.ended_at

    if current_hour < start:
        return Departure(DepartureKind.BEFORE_WINDOW, ReservationStatus.CANCELLED, end, now, current_hour)
    if current_hour <= end:
        return Departure(DepartureKind.WITHIN_WINDOW, ReservationStatus.EXPIRED, current_hour, now, current_hour)
    return Departure(DepartureKind.AFTER_WINDOW, ReservationStatus.EXPIRED, end, now, current_hour)


def remaining_minutes(reservation: ReservationRecord, now: datetime) -> int:
    """Minutes left until the end of the reservation's last hour (e.g. 12:59 for ended_at=12)."""
    return (reservation.ended_at + 1) * 60 - minute_of_day(now, reservation.ref_date)


def plan_extension(
    reservation: Optional[ReservationRecord],
    *,
    user_id: int,
    extra_hours: int,
    now: datetime,
    occupied: tuple[OccupiedInterval, ...],
    window_minutes: int = 20,
    max_extension_count: int = 3,
) -> Extension:
    reservation = ensure_active_owner(reservation, user_id=user_id)
    if extra_hours not in EXTENSION_CHOICES:
        raise InvalidSpanError(f"extension must be one of {', '.join(map(str, EXTENSION_CHOICES))} hours")

    remaining = remaining_minutes(reservation, now)
    if remaining <= 0:
        raise InvalidStateError("reservation window has already ended")
    if remaining > window_minutes:
        raise ExtendTooEarlyError(
            f"extension opens {window_minutes} minutes before the end ({remaining - window_minutes} minutes to go)"
        )

    new_end = reservation.ended_at + extra_hours
    if new_end > LAST_HOUR:
        raise InvalidSpanError(f"reservation cannot run past {LAST_HOUR}:59")
    if reservation.extended_count >= max_extension_count:
        raise InvalidSpanError(f"reservation was already extended {reservation.extended_count} times")

    conflict = find_conflict(occupied, reservation.ended_at + 1, new_end)
    if conflict is not None:
        raise SlotConflictError(f"hours {conflict.start}-{conflict.end} are already reserved")

    return Extension(
        extra_hours=extra_hours,
        ended_at=new_end,
        extended_at=now,
        extended_count=reservation.extended_count + 1,
        remaining_minutes=remaining,
    )
