"""Test data layer.

Rules:
- No engine logic (plain dict/list/primitive)
- No network or storage dependencies
"""

from .tenders import (
    FIRST_PAGE_IDS,
    FIRST_PAGE_STATS,
    ICT_IDS,
    NOW,
    SECOND_PAGE_IDS,
    TENDER_RECORDS,
    URGENT_IDS,
)

__all__ = [
    "FIRST_PAGE_IDS",
    "FIRST_PAGE_STATS",
    "ICT_IDS",
    "NOW",
    "SECOND_PAGE_IDS",
    "TENDER_RECORDS",
    "URGENT_IDS",
]
