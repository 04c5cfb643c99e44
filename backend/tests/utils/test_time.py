from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from seatbook.utils.time import (
    hour_of_day,
    minute_of_day,
    normalize_ref_date,
    to_utc_naive,
    utc_naive_to_local,
)

KST = ZoneInfo("Asia/Seoul")


def test_normalize_ref_date_uses_local_day() -> None:
    # 23:30 UTC on the 9th is already the 10th in Seoul.
    moment = datetime(2025, 3, 9, 23, 30, tzinfo=timezone.utc)
    assert normalize_ref_date(moment) == date(2025, 3, 9)
    assert normalize_ref_date(moment, KST) == date(2025, 3, 10)


def test_naive_datetimes_are_rejected() -> None:
    with pytest.raises(ValueError):
        normalize_ref_date(datetime(2025, 3, 10, 9))
    with pytest.raises(ValueError):
        to_utc_naive(datetime(2025, 3, 10, 9))


def test_utc_round_trip() -> None:
    local = datetime(2025, 3, 10, 9, 15, tzinfo=KST)
    stored = to_utc_naive(local)
    assert stored == datetime(2025, 3, 10, 0, 15)
    assert utc_naive_to_local(stored, KST) == local


def test_hour_of_day_is_relative_to_reference_day() -> None:
    day = date(2025, 3, 10)
    assert hour_of_day(datetime(2025, 3, 10, 9, 59, tzinfo=KST), day) == 9
    assert hour_of_day(datetime(2025, 3, 11, 0, 30, tzinfo=KST), day) == 24
    assert hour_of_day(datetime(2025, 3, 9, 23, 0, tzinfo=KST), day) == -1
    assert minute_of_day(datetime(2025, 3, 11, 0, 30, tzinfo=KST), day) == 24 * 60 + 30
