"""
Tests for datetime helpers.
"""

from datetime import datetime, timedelta

import pytz

from bandroom.utils.datetime_utils import (
    ensure_utc,
    format_display_date,
    format_display_time,
    latest,
    utcnow,
)


def test_utcnow_is_aware():
    assert utcnow().tzinfo is not None


def test_ensure_utc_tags_naive_values():
    naive = datetime(2026, 3, 14, 19, 30)
    assert ensure_utc(naive) == pytz.UTC.localize(naive)


def test_ensure_utc_converts_other_zones():
    eastern = pytz.timezone("America/New_York").localize(datetime(2026, 3, 14, 15, 0))
    assert ensure_utc(eastern).hour == 19


def test_ensure_utc_none():
    assert ensure_utc(None) is None


def test_latest_ignores_none_and_mixes_naive():
    early = datetime(2026, 3, 1, 12, 0)
    late = pytz.UTC.localize(datetime(2026, 3, 2, 12, 0))
    assert latest(None, early, late) == late
    assert latest(None, None) is None
    assert latest(early) == early.replace(tzinfo=pytz.UTC)
    assert latest(late, late - timedelta(days=1)) == late


def test_format_display_date():
    assert format_display_date("2026-03-14") == "March 14"
    assert format_display_date("2026-11-02") == "November 2"
    assert format_display_date("someday") == "someday"


def test_format_display_time():
    assert format_display_time("19:30:00") == "7:30 PM"
    assert format_display_time("00:05") == "12:05 AM"
    assert format_display_time("12:00") == "12:00 PM"
    assert format_display_time("late") == "late"
