"""Shared utilities used across the chat widget engine."""

import uuid
from datetime import date, datetime, timezone


def generate_visitor_id() -> str:
    """Return a fresh UUID-v4 string for an anonymous visitor."""
    return str(uuid.uuid4())


def utc_now_iso() -> str:
    """Current time as an ISO-8601 string with a UTC offset."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z``.

    Naive values are treated as UTC.

    Examples:
        >>> parse_timestamp("2025-03-15T10:00:00Z").tzinfo is not None
        True
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def calendar_day(timestamp: str) -> date:
    """Calendar day (UTC) a timestamp falls on."""
    return parse_timestamp(timestamp).astimezone(timezone.utc).date()


def format_day(day: date) -> str:
    """Render a day the way the widget's date separator shows it."""
    return f"{day:%B} {day.day}, {day.year}"
