"""
In-memory tender gateway.

Serves a fixed set of tenders with the same query semantics as the
remote tender service: industry membership, province equality,
case-insensitive substring search over title/description/buyer,
urgent-first then newest-first ordering, and page slicing.
Used for offline runs (``--fixture``) and tests.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Iterable

from tenderdesk.core.errors import QueryFailed
from tenderdesk.core.normalize import Tender, TenderPayloadError
from tenderdesk.core.urgency import URGENT_WINDOW, utcnow

from .base import TenderPage, TenderQuery, TenderQueryGateway

logger = logging.getLogger(__name__)


class InMemoryTenderGateway(TenderQueryGateway):
    """Gateway over an in-process list of tenders."""

    def __init__(
        self,
        tenders: Iterable[Tender] = (),
        *,
        clock: Callable[[], datetime] | None = None,
        latency: float = 0.0,
        urgent_window: timedelta = URGENT_WINDOW,
    ):
        """Initialize the gateway.

        Args:
            tenders: Corpus to serve
            clock: Source of "now" for urgency ordering
            latency: Seconds to sleep before answering (simulates a network)
            urgent_window: Closing window that sorts a tender to the top
        """
        self._tenders: list[Tender] = list(tenders)
        self._clock = clock or utcnow
        self.latency = latency
        self.urgent_window = urgent_window
        self.calls: list[TenderQuery] = []
        self._failures: list[QueryFailed] = []

    @classmethod
    def from_file(cls, path: Path | str, **kwargs) -> "InMemoryTenderGateway":
        """Load a corpus from a JSON file (a list, or ``{"tenders": [...]}``).

        Raises:
            QueryFailed: If the file is unreadable or not a tender list
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise QueryFailed(f"Cannot load tender fixture {path}: {e}", url=str(path), cause=e) from e

        records = data.get("tenders") if isinstance(data, dict) else data
        if not isinstance(records, list):
            raise QueryFailed(f"Tender fixture {path} holds no tender list", url=str(path))

        tenders = []
        for record in records:
            try:
                tenders.append(Tender.from_dict(record))
            except TenderPayloadError as e:
                logger.warning("Skipping fixture record: %s", e)
        return cls(tenders, **kwargs)

    @property
    def name(self) -> str:
        return "memory"

    @property
    def tenders(self) -> list[Tender]:
        return list(self._tenders)

    def fail_next(self, message: str = "Simulated tender service failure", times: int = 1) -> None:
        """Make the next ``times`` calls raise QueryFailed."""
        for _ in range(times):
            self._failures.append(QueryFailed(message, url="memory://tenders"))

    def _matches(self, tender: Tender, request: TenderQuery) -> bool:
        if request.industries and tender.industry_category not in request.industries:
            return False
        if request.province and tender.province != request.province:
            return False
        if request.search:
            needle = request.search.lower()
            haystacks = (tender.title, tender.description, tender.buyer)
            if not any(needle in h.lower() for h in haystacks):
                return False
        return True

    def filtered(self, request: TenderQuery) -> list[Tender]:
        """All matching tenders in service order (unpaged)."""
        now = self._clock()
        matches = [t for t in self._tenders if self._matches(t, request)]
        # Newest first, then a stable partition puts urgent ones on top
        matches.sort(key=lambda t: t.published_date, reverse=True)
        matches.sort(key=lambda t: not t.is_urgent(now, self.urgent_window))
        return matches

    async def _answer(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        if self._failures:
            raise self._failures.pop(0)

    async def query(self, request: TenderQuery) -> TenderPage:
        self.calls.append(request)
        await self._answer()

        matches = self.filtered(request)
        window = matches[request.offset:request.offset + request.page_size]
        return TenderPage(tenders=tuple(window), total_count=len(matches))

    async def get(self, tender_id: str) -> Tender | None:
        await self._answer()
        return next((t for t in self._tenders if t.id == tender_id), None)
