"""
Parsing utilities for normalizing remote tender payloads.

Timestamps arrive as ISO 8601 strings from the tender service, but older
sources send looser formats; those fall back to dateparser.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from typing import Any

import dateparser


_DATEPARSER_SETTINGS = {
    "PREFER_DAY_OF_MONTH": "first",
    "RETURN_AS_TIMEZONE_AWARE": True,
    "TO_TIMEZONE": "UTC",
    "TIMEZONE": "UTC",
    "STRICT_PARSING": False,
}


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str | datetime | date | None) -> datetime | None:
    """Parse a timestamp from the tender service.

    Handles:
    - datetime / date objects
    - ISO 8601 (with ``Z`` or offset, date-only)
    - Anything dateparser understands ("15 March 2026", "2026/03/15 10:00")

    Returns:
        Aware UTC datetime, or None when the value is empty or unparseable
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)

    text = normalize_whitespace(str(value))
    if not text:
        return None

    try:
        return ensure_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass

    parsed = dateparser.parse(text, settings=_DATEPARSER_SETTINGS)
    if parsed is None:
        return None
    return ensure_utc(parsed)


def normalize_whitespace(text: Any) -> str:
    """Collapse runs of whitespace and strip the ends."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", str(text)).strip()


def coerce_str_list(value: Any) -> list[str]:
    """Coerce a payload value into a list of non-empty strings.

    Accepts a list, a comma-separated string, or None.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(v) for v in value if v is not None]
    else:
        return []
    return [item.strip() for item in items if item and item.strip()]
