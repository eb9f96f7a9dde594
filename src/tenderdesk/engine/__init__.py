"""Tender discovery engine: filters, view modes, saved tenders, stats, paging."""

from .criteria import ALL_PROVINCES, FilterCriteria, FilterCriteriaStore
from .discovery import (
    EmptyReason,
    EngineEvent,
    QueryErrorState,
    TenderDiscoveryEngine,
    ViewState,
    ViewStatus,
)
from .pagination import PaginationController
from .saved import SAVED_TENDERS_KEY, SavedTenderRegistry, storage_key
from .stats import StatsScope, StatsSnapshot, compute_stats
from .view_mode import ViewMode, ViewModeSelector, filter_saved, filter_urgent

__all__ = [
    # Criteria
    "ALL_PROVINCES",
    "FilterCriteria",
    "FilterCriteriaStore",
    # Engine
    "EmptyReason",
    "EngineEvent",
    "QueryErrorState",
    "TenderDiscoveryEngine",
    "ViewState",
    "ViewStatus",
    # Pagination
    "PaginationController",
    # Saved tenders
    "SAVED_TENDERS_KEY",
    "SavedTenderRegistry",
    "storage_key",
    # Stats
    "StatsScope",
    "StatsSnapshot",
    "compute_stats",
    # View modes
    "ViewMode",
    "ViewModeSelector",
    "filter_saved",
    "filter_urgent",
]
