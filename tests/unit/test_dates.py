"""
Module: tests/unit/test_dates.py

What:
    Validate relative and absolute date parsing used by ``since:``/``before:``
    tokens and structured custom ranges.
"""

from datetime import datetime, timedelta, timezone

import pytest

from imapquery.errors import InvalidDate
from imapquery.query.dates import parse_date, shift_months, start_of_month, start_of_week

NOW = datetime(2024, 5, 15, 14, 45, 30)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("today", datetime(2024, 5, 15)),
        ("Yesterday", datetime(2024, 5, 14)),
        ("2h", NOW - timedelta(hours=2)),
        ("3 hours", NOW - timedelta(hours=3)),
        ("30m", NOW - timedelta(minutes=30)),
        ("15 min", NOW - timedelta(minutes=15)),
        ("7d", NOW - timedelta(days=7)),
        ("2 days", NOW - timedelta(days=2)),
        ("2024-01-02", datetime(2024, 1, 2)),
        ("2024-01-02T08:15:00", datetime(2024, 1, 2, 8, 15)),
    ],
)
def test_parse_date_forms(text, expected):
    assert parse_date(text, now=NOW) == expected


def test_trailing_z_is_utc():
    assert parse_date("2024-01-02T08:00:00Z", now=NOW) == datetime(2024, 1, 2, 8, tzinfo=timezone.utc)


@pytest.mark.parametrize("text", ["", "soon", "32/13/2024", "3 weeks"])
def test_unparseable_dates_raise(text):
    with pytest.raises(InvalidDate):
        parse_date(text, now=NOW)


def test_calendar_helpers():
    assert start_of_week(NOW) == datetime(2024, 5, 13)
    assert start_of_month(NOW) == datetime(2024, 5, 1)
    assert shift_months(datetime(2024, 1, 1), -1) == datetime(2023, 12, 1)
