"""
Summary counters shown next to the tender list.

By default the counters are computed over the page the engine holds, not
the full corpus, so they are only exact when that page happens to contain
the whole filtered set. Snapshots built this way carry
``StatsScope.PAGE``. When the tender service sends corpus-wide aggregates
they are used instead and the snapshot carries ``StatsScope.CORPUS``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Sequence

from tenderdesk.core.gateway import CorpusAggregates
from tenderdesk.core.normalize import Tender
from tenderdesk.core.urgency import URGENT_WINDOW, month_start, utcnow, week_start


class StatsScope(str, Enum):
    """What population the counters describe."""

    PAGE = "page"  # approximate: latest fetched page only
    CORPUS = "corpus"  # supplied by the tender service


@dataclass(frozen=True)
class StatsSnapshot:
    total_tenders: int = 0
    this_week_tenders: int = 0
    this_month_tenders: int = 0
    urgent_tenders: int = 0
    saved_count: int = 0
    industry_count: int = 0
    scope: StatsScope = StatsScope.PAGE
    computed_at: datetime = field(default_factory=utcnow)

    @property
    def approximate(self) -> bool:
        return self.scope is StatsScope.PAGE

    def with_saved_count(self, saved_count: int) -> "StatsSnapshot":
        return replace(self, saved_count=saved_count)

    def to_dict(self) -> dict[str, object]:
        return {
            "total_tenders": self.total_tenders,
            "this_week_tenders": self.this_week_tenders,
            "this_month_tenders": self.this_month_tenders,
            "urgent_tenders": self.urgent_tenders,
            "saved_count": self.saved_count,
            "industry_count": self.industry_count,
            "scope": self.scope.value,
            "computed_at": self.computed_at.isoformat(),
        }


def compute_stats(
    tenders: Sequence[Tender],
    saved_count: int,
    now: datetime,
    aggregates: CorpusAggregates | None = None,
    urgent_window: timedelta = URGENT_WINDOW,
) -> StatsSnapshot:
    """Build a StatsSnapshot for the held page.

    Args:
        tenders: The latest fetched page, before any view-mode filtering
        saved_count: Current size of the saved registry
        now: Reference time for the week/month/urgent windows
        aggregates: Corpus-wide counters from the service, if any
        urgent_window: Must match the window the view mode filter uses
    """
    industry_count = len({t.industry_category for t in tenders if t.industry_category})

    if aggregates is not None:
        return StatsSnapshot(
            total_tenders=aggregates.total,
            this_week_tenders=aggregates.this_week,
            this_month_tenders=aggregates.this_month,
            urgent_tenders=aggregates.urgent,
            saved_count=saved_count,
            industry_count=industry_count,
            scope=StatsScope.CORPUS,
            computed_at=now,
        )

    since_week = week_start(now)
    since_month = month_start(now)

    return StatsSnapshot(
        total_tenders=len(tenders),
        this_week_tenders=sum(1 for t in tenders if t.published_date >= since_week),
        this_month_tenders=sum(1 for t in tenders if t.published_date >= since_month),
        urgent_tenders=sum(1 for t in tenders if t.is_urgent(now, urgent_window)),
        saved_count=saved_count,
        industry_count=industry_count,
        scope=StatsScope.PAGE,
        computed_at=now,
    )
