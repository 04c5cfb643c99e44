from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from ..models import ReservationStatus
from .slots import FIRST_HOUR, LAST_HOUR, to_slot


class OccupyingRecord(Protocol):
    id: int
    started_at: int
    ended_at: int
    status: ReservationStatus
    checkout_at: object


@dataclass(frozen=True)
class OccupiedInterval:
    reservation_id: int
    start: int
    end: int

    def overlaps(self, start: int, end: int) -> bool:
        return start <= self.end and end >= self.start


def occupied_interval(reservation: OccupyingRecord) -> Optional[OccupiedInterval]:
    """Hours a reservation blocks on its seat, or None when it blocks nothing.

    Departure already clipped `ended_at` to the hour actually used, so the
    stored bounds are authoritative for expired reservations too.
    """
    blocks = reservation.status == ReservationStatus.ACTIVE or (
        reservation.status == ReservationStatus.EXPIRED and reservation.checkout_at is not None
    )
    if not blocks:
        return None
    return OccupiedInterval(reservation.id, reservation.started_at, reservation.ended_at)


def occupied_intervals(
    reservations: Iterable[OccupyingRecord],
    *,
    exclude_id: int | None = None,
) -> list[OccupiedInterval]:
    intervals = []
    for reservation in reservations:
        if exclude_id is not None and reservation.id == exclude_id:
            continue
        interval = occupied_interval(reservation)
        if interval is not None:
            intervals.append(interval)
    return sorted(intervals, key=lambda i: (i.start, i.end))


def find_conflict(
    intervals: Iterable[OccupiedInterval],
    start: int,
    end: int,
) -> Optional[OccupiedInterval]:
    for interval in intervals:
        if interval.overlaps(start, end):
            return interval
    return None


def has_conflict(intervals: Iterable[OccupiedInterval], start: int, end: int) -> bool:
    return find_conflict(intervals, start, end) is not None


def occupied_slots(intervals: Iterable[OccupiedInterval]) -> list[int]:
    """Union of intervals as sorted slot indices, clipped to the daily grid."""
    slots: set[int] = set()
    for interval in intervals:
        for hour in range(max(interval.start, FIRST_HOUR), min(interval.end, LAST_HOUR) + 1):
            slots.add(to_slot(hour))
    return sorted(slots)
