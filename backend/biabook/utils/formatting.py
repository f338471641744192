from __future__ import annotations

from datetime import date, datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def parse_hhmm(value: str) -> time:
    hours, _, minutes = (value or "").strip().partition(":")
    return time(hour=int(hours), minute=int(minutes or 0))


def format_date(value: date | datetime | str) -> str:
    """Render a date as ``Monday, January 1, 2024``."""
    if isinstance(value, str):
        value = date.fromisoformat(value[:10])
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


def format_time(value: str) -> str:
    """Render an ``HH:MM`` string as ``9:00 AM``."""
    parsed = parse_hhmm(value)
    hour = parsed.hour % 12 or 12
    suffix = "AM" if parsed.hour < 12 else "PM"
    return f"{hour}:{parsed.minute:02d} {suffix}"


def format_currency(cents: int | None) -> str:
    amount = (cents or 0) / 100
    return f"${amount:,.2f}"


def timezone_abbreviation(tz_name: str, at: datetime) -> str:
    try:
        zone = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return tz_name
    if at.tzinfo is None:
        at = at.replace(tzinfo=zone)
    return at.astimezone(zone).tzname() or tz_name
