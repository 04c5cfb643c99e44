from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from .time import get_zone


class Clock(Protocol):
    """Source of "now" for every time comparison made by the engine.

    The current hour is taken from the same reading via `hour_of_day`, so 00:30
    after the reservation day still counts as hour 24.
    """

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in the service timezone, optionally shifted by whole hours."""

    def __init__(self, tz: ZoneInfo | None = None, offset_hours: int = 0) -> None:
        self.tz = tz or get_zone()
        self.offset = timedelta(hours=offset_hours)

    def now(self) -> datetime:
        return datetime.now(self.tz) + self.offset


class FixedClock:
    """Clock frozen at a given aware instant."""

    def __init__(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            raise ValueError("datetime must be timezone-aware")
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def advance(self, **kwargs: float) -> None:
        self.moment = self.moment + timedelta(**kwargs)
