"""
Date-window rules shared by the view mode filter and the stats aggregator.

Both must agree on what "urgent" means, so the threshold lives here and
nowhere else.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

URGENT_WINDOW_DAYS = 7
URGENT_WINDOW = timedelta(days=URGENT_WINDOW_DAYS)

RECENT_WINDOW = timedelta(days=7)


def utcnow() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def urgent_cutoff(now: datetime, window: timedelta = URGENT_WINDOW) -> datetime:
    """Latest closing date that still counts as urgent."""
    return now + window


def is_urgent(closing_date: datetime, now: datetime, window: timedelta = URGENT_WINDOW) -> bool:
    """True when the tender closes on or before ``now + window``.

    Already-closed tenders count as urgent too.
    """
    return closing_date <= urgent_cutoff(now, window)


def week_start(now: datetime) -> datetime:
    """Start of the trailing 7-day publication window."""
    return now - RECENT_WINDOW


def month_start(now: datetime) -> datetime:
    """Midnight on the first calendar day of ``now``'s month, in ``now``'s timezone."""
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
