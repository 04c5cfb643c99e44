from datetime import date, datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Asia/Seoul"


@lru_cache
def get_zone(name: str = DEFAULT_TIMEZONE) -> ZoneInfo:
    return ZoneInfo(name)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_naive_to_local(dt: datetime, tz: ZoneInfo) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(tz)


def _localize(moment: datetime, tz: ZoneInfo | None) -> datetime:
    if moment.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return moment.astimezone(tz) if tz is not None else moment


def normalize_ref_date(moment: datetime, tz: ZoneInfo | None = None) -> date:
    """Return the calendar day a moment belongs to.

    This is the only place a reservation day is derived from an instant; both
    booking and availability lookups go through it. Without `tz` the moment's
    own timezone (the clock's) decides the day.
    """
    return _localize(moment, tz).date()


def hour_of_day(moment: datetime, ref_date: date, tz: ZoneInfo | None = None) -> int:
    """Hour of `moment` counted from the start of `ref_date`.

    00:30 on the following day is hour 24, which is the last slot of the grid.
    Moments before `ref_date` give negative hours.
    """
    local = _localize(moment, tz)
    days = (local.date() - ref_date).days
    return days * 24 + local.hour


def minute_of_day(moment: datetime, ref_date: date, tz: ZoneInfo | None = None) -> int:
    local = _localize(moment, tz)
    return hour_of_day(local, ref_date) * 60 + local.minute
