"""
Pagination bounds derived from the service's total count.
"""

from __future__ import annotations

import math

from tenderdesk.core.errors import InvalidPageRequest
from tenderdesk.core.gateway import DEFAULT_PAGE_SIZE


class PaginationController:
    """Keeps page navigation within ``[1, display_pages]``."""

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        self.page_size = page_size
        self.total_count = 0

    def update(self, total_count: int) -> None:
        self.total_count = max(0, total_count)

    @property
    def total_pages(self) -> int:
        """``ceil(total_count / page_size)``; 0 when there are no results."""
        return math.ceil(self.total_count / self.page_size)

    @property
    def display_pages(self) -> int:
        """Page count for navigation: an empty result is still one page."""
        return max(1, self.total_pages)

    @property
    def shows_controls(self) -> bool:
        return self.total_pages > 1

    def has_next(self, page: int) -> bool:
        return page < self.display_pages

    def has_previous(self, page: int) -> bool:
        return page > 1

    def next(self, page: int) -> int | None:
        """Following page, or None when already on the last page."""
        return page + 1 if self.has_next(page) else None

    def previous(self, page: int) -> int | None:
        """Preceding page, or None when already on page 1."""
        return page - 1 if self.has_previous(page) else None

    def validate(self, page: int) -> int:
        """Return ``page`` if navigable.

        Raises:
            InvalidPageRequest: If ``page`` is outside ``[1, display_pages]``
        """
        if page < 1 or page > self.display_pages:
            raise InvalidPageRequest(page, self.display_pages)
        return page

    def clamp(self, page: int) -> int:
        return min(max(1, page), self.display_pages)
