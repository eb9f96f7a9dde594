"""
View modes: a mutually exclusive refinement of the fetched page.

The mode is a single enum value, so URGENT and SAVED can never be active
together. Filtering happens on the page already held; it never queries.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Container, Sequence

from tenderdesk.core.normalize import Tender
from tenderdesk.core.urgency import URGENT_WINDOW


class ViewMode(str, Enum):
    """Which slice of the fetched page is shown."""

    ALL = "all"
    URGENT = "urgent"
    SAVED = "saved"


def filter_urgent(
    tenders: Sequence[Tender],
    now: datetime,
    window: timedelta = URGENT_WINDOW,
) -> list[Tender]:
    """Keep tenders closing on or before ``now + window``."""
    return [t for t in tenders if t.is_urgent(now, window)]


def filter_saved(tenders: Sequence[Tender], saved_ids: Container[str]) -> list[Tender]:
    """Keep tenders whose id is bookmarked."""
    return [t for t in tenders if t.id in saved_ids]


class ViewModeSelector:
    """Holds the active ViewMode.

    ``activate_*`` set a mode outright; ``toggle_*`` behave like the
    dashboard's stat cards, where clicking the active card returns to ALL.
    Each returns True when the mode changed.
    """

    def __init__(self, mode: ViewMode = ViewMode.ALL, urgent_window: timedelta = URGENT_WINDOW):
        self._mode = mode
        self.urgent_window = urgent_window

    @property
    def mode(self) -> ViewMode:
        return self._mode

    @property
    def urgent_active(self) -> bool:
        return self._mode is ViewMode.URGENT

    @property
    def saved_active(self) -> bool:
        return self._mode is ViewMode.SAVED

    def _set(self, mode: ViewMode) -> bool:
        changed = mode is not self._mode
        self._mode = mode
        return changed

    def activate_urgent(self) -> bool:
        return self._set(ViewMode.URGENT)

    def activate_saved(self) -> bool:
        return self._set(ViewMode.SAVED)

    def activate_all(self) -> bool:
        return self._set(ViewMode.ALL)

    def toggle_urgent(self) -> bool:
        return self._set(ViewMode.ALL if self.urgent_active else ViewMode.URGENT)

    def toggle_saved(self) -> bool:
        return self._set(ViewMode.ALL if self.saved_active else ViewMode.SAVED)

    def apply(
        self,
        tenders: Sequence[Tender],
        saved_ids: Container[str],
        now: datetime,
    ) -> list[Tender]:
        """Refine ``tenders`` according to the active mode."""
        if self._mode is ViewMode.URGENT:
            return filter_urgent(tenders, now, self.urgent_window)
        if self._mode is ViewMode.SAVED:
            return filter_saved(tenders, saved_ids)
        return list(tenders)
