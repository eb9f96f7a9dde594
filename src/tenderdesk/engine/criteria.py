"""
Filter criteria: the composed query the engine sends to the gateway.

``FilterCriteria`` is immutable; every transition returns a new value.
Any change other than the page itself sends the user back to page 1.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable

from tenderdesk.core.gateway import DEFAULT_PAGE_SIZE, TenderQuery

ALL_PROVINCES = "all"


def _normalize_industries(industries: Iterable[str] | None) -> frozenset[str]:
    if not industries:
        return frozenset()
    if isinstance(industries, str):
        industries = [industries]
    # str(Enum member) would give the qualified name, so unwrap .value
    return frozenset(
        getattr(item, "value", item).strip()
        for item in industries
        if item and getattr(item, "value", item).strip()
    )


def _normalize_province(code: str | None) -> str:
    code = getattr(code, "value", code)
    if not code or not code.strip() or code.strip().lower() == ALL_PROVINCES:
        return ALL_PROVINCES
    return code.strip()


@dataclass(frozen=True)
class FilterCriteria:
    """Industries, province, search text and the current 1-based page."""

    industries: frozenset[str] = field(default_factory=frozenset)
    province: str = ALL_PROVINCES
    search: str = ""
    page: int = 1

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")

    # -- transitions --------------------------------------------------------

    def with_industries(self, industries: Iterable[str] | None) -> "FilterCriteria":
        return replace(self, industries=_normalize_industries(industries), page=1)

    def with_province(self, code: str | None) -> "FilterCriteria":
        return replace(self, province=_normalize_province(code), page=1)

    def with_search(self, text: str | None) -> "FilterCriteria":
        return replace(self, search=(text or "").strip(), page=1)

    def with_page(self, page: int) -> "FilterCriteria":
        return replace(self, page=page)

    def cleared(self) -> "FilterCriteria":
        return FilterCriteria()

    # -- derived ------------------------------------------------------------

    @property
    def is_default(self) -> bool:
        return self == FilterCriteria()

    @property
    def active_filter_count(self) -> int:
        """Number of active constraints, as shown on the filter badge."""
        return (
            len(self.industries)
            + (1 if self.province != ALL_PROVINCES else 0)
            + (1 if self.search else 0)
        )

    def to_query(self, page_size: int = DEFAULT_PAGE_SIZE) -> TenderQuery:
        """Translate into a gateway query, dropping absent constraints."""
        return TenderQuery(
            page=self.page,
            page_size=page_size,
            industries=self.industries or None,
            province=None if self.province == ALL_PROVINCES else self.province,
            search=self.search or None,
        )


class FilterCriteriaStore:
    """Holds the current FilterCriteria and swaps it on each command.

    Every setter returns True when the criteria actually changed, so the
    caller knows whether a re-fetch is needed.
    """

    def __init__(self, initial: FilterCriteria | None = None):
        self._criteria = initial or FilterCriteria()

    @property
    def criteria(self) -> FilterCriteria:
        return self._criteria

    @property
    def page(self) -> int:
        return self._criteria.page

    def _swap(self, new: FilterCriteria) -> bool:
        changed = new != self._criteria
        self._criteria = new
        return changed

    def set_industries(self, industries: Iterable[str] | None) -> bool:
        return self._swap(self._criteria.with_industries(industries))

    def set_province(self, code: str | None) -> bool:
        return self._swap(self._criteria.with_province(code))

    def set_search(self, text: str | None) -> bool:
        return self._swap(self._criteria.with_search(text))

    def set_page(self, page: int, total_pages: int) -> bool:
        """Move to ``page``; a no-op returning False outside ``[1, total_pages]``."""
        if page < 1 or page > total_pages:
            return False
        return self._swap(self._criteria.with_page(page))

    def reset_page(self) -> bool:
        return self._swap(self._criteria.with_page(1))

    def clear_all(self) -> bool:
        return self._swap(self._criteria.cleared())
