"""
Unit tests for display formatting and PII redaction helpers.
"""

from __future__ import annotations

from datetime import date, datetime

import pytest

from biabook.utils.formatting import format_currency, format_date, format_time, timezone_abbreviation
from biabook.utils.redaction import log_email, log_phone, redact_email, redact_phone

# ── Formatting ───────────────────────────────────────────────────────


def test_format_date_long_form():
    assert format_date(date(2024, 1, 1)) == "Monday, January 1, 2024"
    assert format_date("2024-03-15") == "Friday, March 15, 2024"


@pytest.mark.parametrize(
    ("value", "expected"),
    [("00:00", "12:00 AM"), ("09:05", "9:05 AM"), ("12:00", "12:00 PM"), ("17:30", "5:30 PM")],
)
def test_format_time_twelve_hour(value, expected):
    assert format_time(value) == expected


@pytest.mark.parametrize(("cents", "expected"), [(1099, "$10.99"), (0, "$0.00"), (None, "$0.00"), (123456, "$1,234.56")])
def test_format_currency(cents, expected):
    assert format_currency(cents) == expected


def test_timezone_abbreviation_follows_dst():
    assert timezone_abbreviation("America/New_York", datetime(2024, 1, 15, 9, 0)) == "EST"
    assert timezone_abbreviation("America/New_York", datetime(2024, 7, 15, 9, 0)) == "EDT"


def test_timezone_abbreviation_unknown_zone_echoes_name():
    assert timezone_abbreviation("Mars/Olympus", datetime(2024, 1, 1)) == "Mars/Olympus"


# ── Redaction ────────────────────────────────────────────────────────


class TestRedactPhone:
    def test_normal_phone(self):
        assert redact_phone("+15550012345") == "***345"

    def test_short_phone(self):
        assert redact_phone("12") == "***12"

    def test_empty_string(self):
        assert redact_phone("") == ""


class TestRedactEmail:
    def test_normal_email(self):
        assert redact_email("john@example.com") == "j***@example.com"

    def test_not_an_email(self):
        assert redact_email("john") == "***"

    def test_empty(self):
        assert redact_email(None) == ""


def test_log_helpers_respect_redaction_flag(monkeypatch):
    from biabook.core.config import get_settings

    assert log_phone("+15550012345") == "***345"

    monkeypatch.setenv("PII_REDACTION_ENABLED", "false")
    get_settings.cache_clear()
    assert log_phone("+15550012345") == "+15550012345"
    assert log_email("john@example.com") == "john@example.com"
