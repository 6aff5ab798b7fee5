"""Tests for application-timezone date helpers."""

from datetime import date, datetime, timezone

import pytest

from practice_journal.core.dates import parse_iso_date, require_text, today_in_app_timezone
from practice_journal.core.exceptions import InvalidInputError


def test_today_uses_application_timezone():
    # 03:30 UTC on March 15th is still the evening of March 14th in New York
    now = datetime(2025, 3, 15, 3, 30, tzinfo=timezone.utc)
    assert today_in_app_timezone(now) == date(2025, 3, 14)


def test_today_after_local_midnight():
    now = datetime(2025, 3, 15, 5, 0, tzinfo=timezone.utc)
    assert today_in_app_timezone(now) == date(2025, 3, 15)


def test_naive_datetime_is_treated_as_utc():
    assert today_in_app_timezone(datetime(2025, 1, 1, 2, 0)) == date(2024, 12, 31)


def test_parse_iso_date_accepts_strings_and_dates():
    assert parse_iso_date("2024-02-29") == date(2024, 2, 29)
    assert parse_iso_date(" 2024-02-29 ") == date(2024, 2, 29)
    assert parse_iso_date(date(2024, 1, 1)) == date(2024, 1, 1)
    assert parse_iso_date(datetime(2024, 1, 1, 12, 0)) == date(2024, 1, 1)


@pytest.mark.parametrize("value", ["2025-02-29", "not a date", "", None, "2025/01/01"])
def test_parse_iso_date_rejects_malformed(value):
    with pytest.raises(InvalidInputError):
        parse_iso_date(value)


def test_require_text():
    assert require_text("  scales ", "entry") == "scales"
    with pytest.raises(InvalidInputError):
        require_text("   ", "entry")
    with pytest.raises(InvalidInputError):
        require_text(None, "entry")
