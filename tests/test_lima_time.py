"""
Tests for Lima <-> UTC time conversions
"""

import pytest
from datetime import datetime, timezone

from app.utils.lima_time import (
    LimaParts,
    as_utc,
    format_event_datetime,
    format_lima_from_db,
    iso_or_none,
    parse_date_to_lima,
    parse_datetime_local_as_zone,
    to_24h,
    to_datetime_local_from_db,
    to_datetime_local_value_from_db,
    to_db_timestamptz_from_lima,
    to_lima_parts_from_db,
    to_utc_iso,
    to_utc_iso_from_lima_parts,
)


def test_to_24h_edges():
    """Test 12 AM / 12 PM handling"""
    assert to_24h(12, "AM") == 0
    assert to_24h(12, "PM") == 12
    assert to_24h(1, "pm") == 13
    assert to_24h(11, "AM") == 11


@pytest.mark.parametrize("hour", [0, 13, "x"])
def test_to_24h_invalid(hour):
    with pytest.raises(ValueError):
        to_24h(hour, "AM")


def test_lima_parts_to_utc():
    """10:00 PM in Lima is 03:00 UTC the next day"""
    assert to_utc_iso_from_lima_parts("20/12/2025", 10, 0, "PM") == "2025-12-21T03:00:00.000Z"


def test_lima_parts_invalid_date():
    with pytest.raises(ValueError):
        to_utc_iso_from_lima_parts("2025-12-20", 10, 0, "PM")


def test_datetime_local_to_db():
    assert to_db_timestamptz_from_lima("2025-12-20T22:00") == "2025-12-21T03:00:00.000Z"


def test_datetime_local_rejects_bad_format():
    with pytest.raises(ValueError):
        parse_datetime_local_as_zone("20/12/2025 22:00")


def test_datetime_local_round_trip():
    value = "2026-02-27T23:45"
    assert to_datetime_local_from_db(to_db_timestamptz_from_lima(value)) == value


def test_db_value_to_lima_views():
    iso = "2025-12-21T03:00:00.000Z"
    assert format_lima_from_db(iso) == "20/12/2025 10:00 PM"
    assert to_lima_parts_from_db(iso) == LimaParts(date="20/12/2025", hour12=10, minute=0, ampm="PM")
    assert to_datetime_local_from_db(iso) == "2025-12-20T22:00"


def test_naive_datetime_from_db_is_utc():
    """SQLite gives naive datetimes back; they are read as UTC"""
    naive = datetime(2025, 12, 21, 3, 0)
    assert to_datetime_local_from_db(naive) == "2025-12-20T22:00"
    assert as_utc(naive).tzinfo == timezone.utc
    assert iso_or_none(naive) == "2025-12-21T03:00:00.000Z"
    assert iso_or_none(None) is None


def test_lenient_helpers():
    assert to_datetime_local_value_from_db("not-a-date") == ""
    assert format_event_datetime(None) == "—"
    assert format_event_datetime("garbage") == "—"


def test_parse_date_to_lima():
    bare = parse_date_to_lima("2025-12-20T22:00")
    assert (bare.hour, bare.day) == (22, 20)

    zoned = parse_date_to_lima("2025-12-21T03:00:00Z")
    assert (zoned.hour, zoned.day) == (22, 20)

    assert parse_date_to_lima("") is None
    assert parse_date_to_lima("nope") is None


def test_to_utc_iso_keeps_milliseconds():
    value = datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
    assert to_utc_iso(value) == "2025-01-02T03:04:05.678Z"
