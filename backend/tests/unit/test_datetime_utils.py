"""
Tests for timezone helpers.
"""

from datetime import date, datetime, time, timezone

import pytest

from dispatch.core.exceptions import ValidationError
from dispatch.utils.datetime_utils import (
    ensure_utc,
    format_hhmm,
    local_date_of,
    local_datetime_to_utc,
    local_today,
    parse_hhmm,
)

UTC = timezone.utc


def test_local_today_crosses_date_line():
    now = datetime(2024, 1, 19, 23, 0, tzinfo=UTC)
    assert local_today("Asia/Tokyo", now) == date(2024, 1, 20)
    assert local_today("America/Chicago", now) == date(2024, 1, 19)


def test_local_datetime_to_utc_handles_dst():
    assert local_datetime_to_utc(date(2025, 3, 8), time(9, 0), "America/Chicago") == datetime(
        2025, 3, 8, 15, 0, tzinfo=UTC
    )
    assert local_datetime_to_utc(date(2025, 3, 10), time(9, 0), "America/Chicago") == datetime(
        2025, 3, 10, 14, 0, tzinfo=UTC
    )


def test_local_date_of_evening_instant():
    # 22:00 CDT on March 20 is already March 21 in UTC
    assert local_date_of(datetime(2025, 3, 21, 3, 0, tzinfo=UTC), "America/Chicago") == date(2025, 3, 20)


def test_ensure_utc_assumes_naive_is_utc():
    assert ensure_utc(datetime(2025, 1, 1, 12, 0)) == datetime(2025, 1, 1, 12, 0, tzinfo=UTC)
    assert ensure_utc(None) is None


def test_hhmm_round_trip():
    assert parse_hhmm("07:05") == time(7, 5)
    assert format_hhmm(time(7, 5)) == "07:05"
    assert format_hhmm(None) is None


def test_parse_hhmm_rejects_garbage():
    with pytest.raises(ValidationError):
        parse_hhmm("7 o'clock")


def test_unknown_timezone():
    with pytest.raises(ValidationError):
        local_today("Nowhere/Special")
