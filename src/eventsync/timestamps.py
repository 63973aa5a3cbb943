"""Lenient timestamp parsing for upstream payload fields."""

from __future__ import annotations

from datetime import UTC, datetime

from dateutil import parser as date_parser

MINUTE_FORMAT = "%Y-%m-%d %H:%M"


class TimestampError(ValueError):
    """Raised when a payload timestamp cannot be parsed."""


def parse_timestamp(value: str) -> datetime:
    """Parse *value* into an aware UTC datetime.

    Accepts ISO 8601 as well as the ``2026-01-14 10:00:00 +0000`` form the
    platform emits in some payloads.  Naive values are taken as UTC.
    """
    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError, TypeError) as exc:
        raise TimestampError(f"Unparsable timestamp {value!r}: {exc}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def format_minute(value: datetime) -> str:
    """Render *value* in UTC with minute precision (``YYYY-MM-DD HH:MM``)."""
    return value.astimezone(UTC).strftime(MINUTE_FORMAT)
