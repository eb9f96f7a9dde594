"""
Tender gateway base classes and data structures.

Defines the interface contract for every tender data source the engine
can query.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from tenderdesk.core.normalize import Tender
from tenderdesk.core.urgency import utcnow

DEFAULT_PAGE_SIZE = 20


@dataclass(frozen=True)
class TenderQuery:
    """A single paged, filtered query against the tender source.

    Optional constraints are None when absent: no empty industry set,
    no ``"all"`` province, no blank search ever reaches a gateway.
    """

    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    industries: frozenset[str] | None = None
    province: str | None = None
    search: str | None = None

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def to_params(self) -> list[tuple[str, str | int]]:
        """Query-string parameters; industries repeat, sorted for stable URLs."""
        params: list[tuple[str, str | int]] = [
            ("page", self.page),
            ("limit", self.page_size),
        ]
        for industry in sorted(self.industries or ()):
            params.append(("industry", industry))
        if self.province:
            params.append(("province", self.province))
        if self.search:
            params.append(("search", self.search))
        return params


@dataclass(frozen=True)
class CorpusAggregates:
    """Corpus-wide counters, when the tender source can compute them."""

    total: int
    this_week: int
    this_month: int
    urgent: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CorpusAggregates":
        def count(*keys: str) -> int:
            for key in keys:
                if key in data:
                    return int(data[key])
            raise KeyError(keys[0])

        return cls(
            total=count("total", "total_tenders", "totalTenders"),
            this_week=count("this_week", "this_week_tenders", "thisWeekTenders"),
            this_month=count("this_month", "this_month_tenders", "thisMonthTenders"),
            urgent=count("urgent", "urgent_tenders", "urgentTenders"),
        )


@dataclass(frozen=True)
class TenderPage:
    """Result of a query: one page plus the size of the full filtered set."""

    tenders: tuple[Tender, ...]
    total_count: int
    aggregates: CorpusAggregates | None = None
    fetched_at: datetime = field(default_factory=utcnow)

    @property
    def ids(self) -> list[str]:
        return [t.id for t in self.tenders]


class TenderQueryGateway(ABC):
    """Abstract base class for tender sources.

    Implementations raise ``QueryFailed`` on transport or server failure;
    they never return partial pages silently.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Gateway identifier."""
        pass

    @abstractmethod
    async def query(self, request: TenderQuery) -> TenderPage:
        """Fetch one page of tenders matching ``request``.

        Raises:
            QueryFailed: On transport/server failure or malformed payload
        """
        pass

    @abstractmethod
    async def get(self, tender_id: str) -> Tender | None:
        """Fetch a single tender by id; None when it does not exist.

        Raises:
            QueryFailed: On transport/server failure
        """
        pass

    async def close(self) -> None:
        """Release gateway resources."""
        pass

    async def __aenter__(self) -> "TenderQueryGateway":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
