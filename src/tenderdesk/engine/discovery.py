"""
Tender discovery engine.

Composes the filter criteria, view mode, saved registry, pagination and
stats around one tender gateway.

Commands are synchronous and must be called from inside a running event
loop. A command that changes the query schedules a fetch as an
``asyncio.Task`` and returns it. Each fetch carries a sequence number.
Scheduling a new fetch cancels the one in flight, and any response whose
sequence number is not the latest is dropped, so a slow old response can
never overwrite a newer one.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Iterable

from tenderdesk.core.errors import InvalidPageRequest, QueryFailed
from tenderdesk.core.gateway import DEFAULT_PAGE_SIZE, TenderPage, TenderQuery, TenderQueryGateway
from tenderdesk.core.logging import get_contextual_logger
from tenderdesk.core.normalize import Tender
from tenderdesk.core.urgency import URGENT_WINDOW, utcnow

from .criteria import FilterCriteria, FilterCriteriaStore
from .pagination import PaginationController
from .saved import SavedTenderRegistry
from .stats import StatsSnapshot, compute_stats
from .view_mode import ViewMode, ViewModeSelector


class ViewStatus(str, Enum):
    """What the tender view should render."""

    LOADING = "loading"
    READY = "ready"
    EMPTY = "empty"
    ERROR = "error"


class EmptyReason(str, Enum):
    NO_RESULTS = "no_results"  # the query itself matched nothing
    FILTERED_BY_MODE = "filtered_by_mode"  # urgent/saved removed the whole page


class EngineEvent(str, Enum):
    FILTER_CHANGED = "filter_changed"
    VIEW_MODE_CHANGED = "view_mode_changed"
    PAGE_CHANGED = "page_changed"
    SAVE_TOGGLED = "save_toggled"
    RESULTS_LOADED = "results_loaded"
    QUERY_FAILED = "query_failed"


@dataclass(frozen=True)
class QueryErrorState:
    message: str
    retryable: bool = True
    status_code: int | None = None


@dataclass(frozen=True)
class ViewState:
    """Everything needed to render the tender view at one instant."""

    status: ViewStatus
    tenders: tuple[Tender, ...]
    stats: StatsSnapshot
    criteria: FilterCriteria
    mode: ViewMode
    total_count: int
    total_pages: int
    loading: bool = False
    has_next: bool = False
    has_previous: bool = False
    shows_pagination: bool = False
    saved_ids: frozenset[str] = field(default_factory=frozenset)
    error: QueryErrorState | None = None
    empty_reason: EmptyReason | None = None
    warnings: tuple[str, ...] = ()

    @property
    def page(self) -> int:
        return self.criteria.page


Listener = Callable[[EngineEvent, "TenderDiscoveryEngine"], None]


class TenderDiscoveryEngine:
    """Tender listing with filters, view modes, saved tenders and stats."""

    def __init__(
        self,
        gateway: TenderQueryGateway,
        registry: SavedTenderRegistry,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        urgent_window: timedelta = URGENT_WINDOW,
        clock: Callable[[], datetime] | None = None,
        criteria: FilterCriteria | None = None,
        mode: ViewMode = ViewMode.ALL,
    ):
        """Initialize the engine.

        Args:
            gateway: Tender source
            registry: Saved tender registry (loaded on ``start``)
            page_size: Tenders per page
            urgent_window: Shared by the URGENT filter and the urgent counter
            clock: Source of "now" (tests pin it)
            criteria: Initial filter criteria
            mode: Initial view mode
        """
        self.gateway = gateway
        self.registry = registry
        self.store = FilterCriteriaStore(criteria)
        self.view = ViewModeSelector(mode, urgent_window=urgent_window)
        self.pagination = PaginationController(page_size)
        self.urgent_window = urgent_window
        self._clock = clock or utcnow
        self._log = get_contextual_logger("engine")

        self._page: TenderPage | None = None
        self._visible: tuple[Tender, ...] = ()
        self._stats = StatsSnapshot(computed_at=self._clock())
        self._error: QueryFailed | None = None
        self._has_loaded = False

        self._seq = 0
        self._task: asyncio.Task[None] | None = None
        self._closed = False
        self._listeners: list[Listener] = []

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> asyncio.Task[None]:
        """Load saved tenders and issue the first fetch."""
        self.registry.load()
        self._stats = self._stats.with_saved_count(self.registry.count)
        return self._schedule_fetch()

    async def settle(self) -> None:
        """Wait until no fetch is in flight, including ones scheduled meanwhile."""
        while self._task is not None and not self._task.done():
            task = self._task
            await asyncio.wait([task])
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()  # type: ignore[misc]

    def close(self) -> None:
        """Abandon any in-flight fetch. The engine accepts no further fetches."""
        self._closed = True
        # A gateway that answers despite cancellation must still be ignored
        self._seq += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: EngineEvent) -> None:
        for listener in list(self._listeners):
            listener(event, self)

    # =========================================================================
    # Fetching
    # =========================================================================

    @property
    def loading(self) -> bool:
        return self._task is not None and not self._task.done()

    def _schedule_fetch(self) -> asyncio.Task[None]:
        if self._closed:
            raise RuntimeError("Engine is closed")

        self._seq += 1
        seq = self._seq

        current = self._task
        if current is not None and not current.done() and current is not asyncio.current_task():
            current.cancel()

        query = self.store.criteria.to_query(self.pagination.page_size)
        self._task = asyncio.get_running_loop().create_task(self._run(seq, query))
        return self._task

    async def _run(self, seq: int, query: TenderQuery) -> None:
        log = self._log.with_context(query_seq=seq, view_mode=self.view.mode.value)
        log.debug("Querying %s page %d", self.gateway.name, query.page)

        try:
            page = await self.gateway.query(query)
        except QueryFailed as e:
            if seq != self._seq:
                log.debug("Ignoring failure of superseded query")
                return
            self._error = e
            log.warning("Tender query failed: %s", e)
            self._emit(EngineEvent.QUERY_FAILED)
            return

        if seq != self._seq:
            log.debug("Discarding stale response")
            return

        self._apply_page(page, query, log)

    def _apply_page(self, page: TenderPage, query: TenderQuery, log) -> None:
        self.pagination.update(page.total_count)

        if query.page > self.pagination.display_pages:
            # Corpus shrank under us; move to the last page that exists
            clamped = self.pagination.clamp(query.page)
            log.info("Page %d no longer exists, moving to %d", query.page, clamped)
            self.store.set_page(clamped, self.pagination.display_pages)
            self._emit(EngineEvent.PAGE_CHANGED)
            self._schedule_fetch()
            return

        now = self._clock()
        self._page = page
        self._error = None
        self._has_loaded = True
        self._stats = compute_stats(
            page.tenders,
            self.registry.count,
            now,
            aggregates=page.aggregates,
            urgent_window=self.urgent_window,
        )
        self._refilter(now)
        log.info(
            "Loaded %d tenders (%d shown, %d total)",
            len(page.tenders),
            len(self._visible),
            page.total_count,
        )
        self._emit(EngineEvent.RESULTS_LOADED)

    def _refilter(self, now: datetime | None = None) -> None:
        held = self._page.tenders if self._page else ()
        self._visible = tuple(self.view.apply(held, self.registry, now or self._clock()))

    def refresh(self) -> asyncio.Task[None]:
        """Re-run the current query."""
        return self._schedule_fetch()

    def retry(self) -> asyncio.Task[None]:
        """Re-run the current query after a failure."""
        if self._error is not None:
            self._log.info("Retrying tender query")
        return self._schedule_fetch()

    async def lookup(self, tender_id: str) -> Tender | None:
        """Fetch one tender for a detail view (held page first, then the gateway)."""
        if self._page is not None:
            for tender in self._page.tenders:
                if tender.id == tender_id:
                    return tender
        return await self.gateway.get(tender_id)

    # =========================================================================
    # Filter commands
    # =========================================================================

    def _filter_changed(self, changed: bool) -> asyncio.Task[None] | None:
        if not changed:
            return None
        self._emit(EngineEvent.FILTER_CHANGED)
        return self._schedule_fetch()

    def set_industries(self, industries: Iterable[str] | None) -> asyncio.Task[None] | None:
        return self._filter_changed(self.store.set_industries(industries))

    def set_province(self, code: str | None) -> asyncio.Task[None] | None:
        return self._filter_changed(self.store.set_province(code))

    def set_search(self, text: str | None) -> asyncio.Task[None] | None:
        return self._filter_changed(self.store.set_search(text))

    def clear_all(self) -> asyncio.Task[None] | None:
        """Reset every filter, the page and the view mode."""
        criteria_changed = self.store.clear_all()
        mode_changed = self.view.activate_all()

        if mode_changed:
            self._emit(EngineEvent.VIEW_MODE_CHANGED)
        if criteria_changed:
            return self._filter_changed(True)
        if mode_changed:
            self._refilter()
        return None

    # =========================================================================
    # Page commands
    # =========================================================================

    def set_page(self, page: int) -> asyncio.Task[None] | None:
        """Go to ``page``; silently ignored outside the known page range."""
        try:
            self.pagination.validate(page)
        except InvalidPageRequest as e:
            self._log.debug("Ignoring page request: %s", e)
            return None

        if not self.store.set_page(page, self.pagination.display_pages):
            return None
        self._emit(EngineEvent.PAGE_CHANGED)
        return self._schedule_fetch()

    def next_page(self) -> asyncio.Task[None] | None:
        target = self.pagination.next(self.store.page)
        return None if target is None else self.set_page(target)

    def previous_page(self) -> asyncio.Task[None] | None:
        target = self.pagination.previous(self.store.page)
        return None if target is None else self.set_page(target)

    # =========================================================================
    # View mode commands
    # =========================================================================

    def _mode_changed(self, changed: bool) -> asyncio.Task[None] | None:
        # Activating a mode lands on page 1 even when that mode was already on
        if changed:
            self._emit(EngineEvent.VIEW_MODE_CHANGED)
        if self.store.reset_page():
            self._emit(EngineEvent.PAGE_CHANGED)
            return self._schedule_fetch()
        if changed:
            self._refilter()
        return None

    def activate_urgent(self) -> asyncio.Task[None] | None:
        return self._mode_changed(self.view.activate_urgent())

    def activate_saved(self) -> asyncio.Task[None] | None:
        return self._mode_changed(self.view.activate_saved())

    def activate_all(self) -> asyncio.Task[None] | None:
        return self._mode_changed(self.view.activate_all())

    def toggle_urgent(self) -> asyncio.Task[None] | None:
        return self._mode_changed(self.view.toggle_urgent())

    def toggle_saved(self) -> asyncio.Task[None] | None:
        return self._mode_changed(self.view.toggle_saved())

    # =========================================================================
    # Saved tenders
    # =========================================================================

    def toggle_save(self, tender_id: str) -> bool:
        """Bookmark or un-bookmark ``tender_id``. Returns the new saved state."""
        saved = self.registry.toggle(tender_id)
        self._stats = self._stats.with_saved_count(self.registry.count)
        if self.view.saved_active:
            self._refilter()
        self._emit(EngineEvent.SAVE_TOGGLED)
        return saved

    def is_saved(self, tender_id: str) -> bool:
        return self.registry.is_saved(tender_id)

    # =========================================================================
    # Rendering
    # =========================================================================

    @property
    def criteria(self) -> FilterCriteria:
        return self.store.criteria

    @property
    def mode(self) -> ViewMode:
        return self.view.mode

    @property
    def stats(self) -> StatsSnapshot:
        return self._stats

    @property
    def tenders(self) -> tuple[Tender, ...]:
        """Tenders visible under the current view mode."""
        return self._visible

    @property
    def fetched_tenders(self) -> tuple[Tender, ...]:
        """The whole held page, before view-mode filtering."""
        return self._page.tenders if self._page else ()

    @property
    def state(self) -> ViewState:
        loading = self.loading
        error = None
        if self._error is not None:
            error = QueryErrorState(
                message=str(self._error),
                retryable=self._error.retryable,
                status_code=self._error.status_code,
            )

        empty_reason = None
        if loading or (not self._has_loaded and error is None):
            status = ViewStatus.LOADING
        elif error is not None:
            status = ViewStatus.ERROR
        elif not self._visible:
            status = ViewStatus.EMPTY
            if self.fetched_tenders and self.view.mode is not ViewMode.ALL:
                empty_reason = EmptyReason.FILTERED_BY_MODE
            else:
                empty_reason = EmptyReason.NO_RESULTS
        else:
            status = ViewStatus.READY

        page = self.store.page
        return ViewState(
            status=status,
            tenders=self._visible,
            stats=self._stats,
            criteria=self.store.criteria,
            mode=self.view.mode,
            total_count=self.pagination.total_count,
            total_pages=self.pagination.display_pages,
            loading=loading,
            has_next=self.pagination.has_next(page),
            has_previous=self.pagination.has_previous(page),
            shows_pagination=self.pagination.shows_controls,
            saved_ids=frozenset(self.registry.ids),
            error=error,
            empty_reason=empty_reason,
            warnings=tuple(self.registry.warnings),
        )
