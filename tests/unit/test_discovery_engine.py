"""Discovery engine: filters, modes, paging, saved tenders and request ordering."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from tenderdesk.core.gateway import InMemoryTenderGateway, TenderPage, TenderQuery, TenderQueryGateway
from tenderdesk.core.normalize import Tender
from tenderdesk.engine import (
    EmptyReason,
    EngineEvent,
    SavedTenderRegistry,
    StatsScope,
    ViewMode,
    ViewStatus,
)
from tenderdesk.engine.saved import STORAGE_WARNING
from tenderdesk.persistence import SqlClientStorage
from tests.fixtures import FIRST_PAGE_IDS, FIRST_PAGE_STATS, ICT_IDS, NOW, SECOND_PAGE_IDS, URGENT_IDS


class ControlledGateway(TenderQueryGateway):
    """Holds every query until the test releases it."""

    name = "controlled"

    def __init__(self, inner: InMemoryTenderGateway):
        self.inner = inner
        self.pending: list[tuple[TenderQuery, asyncio.Event]] = []

    async def _wait(self, release: asyncio.Event) -> None:
        await release.wait()

    async def query(self, request: TenderQuery) -> TenderPage:
        release = asyncio.Event()
        self.pending.append((request, release))
        await self._wait(release)
        return await self.inner.query(request)

    async def get(self, tender_id: str) -> Tender | None:
        return await self.inner.get(tender_id)


class StubbornGateway(ControlledGateway):
    """Ignores cancellation and answers anyway, like a request already on the wire."""

    async def _wait(self, release: asyncio.Event) -> None:
        try:
            await release.wait()
        except asyncio.CancelledError:
            await release.wait()


async def wait_for_pending(gateway: ControlledGateway, count: int) -> None:
    while len(gateway.pending) < count:
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_initial_load(make_engine):
    engine = make_engine()
    engine.start()
    await engine.settle()

    state = engine.state
    assert state.status is ViewStatus.READY
    assert [t.id for t in state.tenders] == FIRST_PAGE_IDS
    assert state.total_count == 25
    assert state.total_pages == 2
    assert state.page == 1
    assert state.has_next
    assert not state.has_previous
    assert state.shows_pagination
    assert state.mode is ViewMode.ALL
    assert state.stats.scope is StatsScope.PAGE
    for key, value in FIRST_PAGE_STATS.items():
        assert getattr(state.stats, key) == value


@pytest.mark.asyncio
async def test_state_is_loading_until_first_response(make_engine):
    engine = make_engine()
    engine.start()

    assert engine.state.status is ViewStatus.LOADING
    assert engine.state.loading

    await engine.settle()
    assert not engine.state.loading


@pytest.mark.asyncio
async def test_industry_filter_hides_pagination(make_engine, gateway):
    engine = make_engine()
    engine.start()
    await engine.settle()

    engine.set_industries(["ICT & Software"])
    await engine.settle()

    state = engine.state
    assert [t.id for t in state.tenders] == ICT_IDS
    assert state.total_pages == 1
    assert not state.shows_pagination
    assert gateway.calls[-1].industries == frozenset({"ICT & Software"})
    assert state.criteria.active_filter_count == 1


@pytest.mark.asyncio
async def test_filter_change_goes_back_to_page_one(make_engine, gateway):
    engine = make_engine()
    engine.start()
    await engine.settle()
    engine.set_page(2)
    await engine.settle()
    assert [t.id for t in engine.tenders] == SECOND_PAGE_IDS

    engine.set_province("GP")
    await engine.settle()

    assert gateway.calls[-1].page == 1
    assert gateway.calls[-1].province == "GP"
    assert engine.state.page == 1


@pytest.mark.asyncio
async def test_unchanged_filter_does_not_refetch(make_engine, gateway):
    engine = make_engine()
    engine.start()
    await engine.settle()

    assert engine.set_search("") is None
    assert engine.set_province("all") is None
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_next_and_previous_stop_at_bounds(make_engine, gateway):
    engine = make_engine()
    engine.start()
    await engine.settle()

    assert engine.previous_page() is None
    engine.next_page()
    await engine.settle()
    assert engine.state.page == 2
    assert not engine.state.has_next

    assert engine.next_page() is None
    assert len(gateway.calls) == 2

    engine.previous_page()
    await engine.settle()
    assert engine.state.page == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("page", [0, 3, 99])
async def test_out_of_range_page_is_ignored(make_engine, gateway, page):
    engine = make_engine()
    engine.start()
    await engine.settle()

    assert engine.set_page(page) is None
    assert engine.state.page == 1
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_urgent_mode_refines_held_page_without_refetch(make_engine, gateway):
    engine = make_engine()
    engine.start()
    await engine.settle()
    stats_before = engine.stats

    assert engine.activate_urgent() is None

    assert {t.id for t in engine.tenders} == URGENT_IDS
    assert engine.state.mode is ViewMode.URGENT
    assert len(gateway.calls) == 1
    # Counters describe the fetched page, not the refined view
    assert engine.stats == stats_before


@pytest.mark.asyncio
async def test_mode_change_on_later_page_refetches_page_one(make_engine, gateway):
    engine = make_engine()
    engine.start()
    await engine.settle()
    engine.set_page(2)
    await engine.settle()

    task = engine.toggle_urgent()
    assert task is not None
    await engine.settle()

    assert gateway.calls[-1].page == 1
    assert {t.id for t in engine.tenders} == URGENT_IDS


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "mode, activate",
    [
        (ViewMode.URGENT, "activate_urgent"),
        (ViewMode.SAVED, "activate_saved"),
        (ViewMode.ALL, "activate_all"),
    ],
)
async def test_activating_current_mode_returns_to_page_one(make_engine, gateway, mode, activate):
    engine = make_engine(mode=mode)
    engine.start()
    await engine.settle()
    engine.set_page(2)
    await engine.settle()
    events: list[EngineEvent] = []
    engine.subscribe(lambda event, _: events.append(event))

    task = getattr(engine, activate)()
    assert task is not None
    await engine.settle()

    assert engine.state.page == 1
    assert engine.mode is mode
    assert gateway.calls[-1].page == 1
    assert EngineEvent.VIEW_MODE_CHANGED not in events
    assert events[0] is EngineEvent.PAGE_CHANGED


@pytest.mark.asyncio
async def test_activating_current_mode_on_page_one_is_a_no_op(make_engine, gateway):
    engine = make_engine(mode=ViewMode.URGENT)
    engine.start()
    await engine.settle()
    calls = len(gateway.calls)

    assert engine.activate_urgent() is None
    assert len(gateway.calls) == calls


@pytest.mark.asyncio
async def test_urgent_window_five_and_ten_days(clock, make_engine):
    gateway = InMemoryTenderGateway(
        [
            Tender(id="soon", title="Closes in 5 days", published_date=NOW, closing_date=NOW + timedelta(days=5)),
            Tender(id="later", title="Closes in 10 days", published_date=NOW, closing_date=NOW + timedelta(days=10)),
        ],
        clock=clock,
    )
    engine = make_engine(gateway=gateway, mode=ViewMode.URGENT)
    engine.start()
    await engine.settle()

    assert [t.id for t in engine.tenders] == ["soon"]
    assert engine.stats.urgent_tenders == 1


@pytest.mark.asyncio
async def test_saved_mode_follows_bookmarks(make_engine):
    engine = make_engine()
    engine.start()
    await engine.settle()

    engine.toggle_save("T-011")
    engine.toggle_save("T-002")
    engine.activate_saved()
    assert [t.id for t in engine.tenders] == ["T-002", "T-011"]

    assert engine.toggle_save("T-002") is False
    assert [t.id for t in engine.tenders] == ["T-011"]
    assert engine.stats.saved_count == 1
    assert engine.state.saved_ids == frozenset({"T-011"})


@pytest.mark.asyncio
async def test_saved_count_updates_in_all_mode(make_engine):
    engine = make_engine()
    engine.start()
    await engine.settle()

    assert engine.toggle_save("T-001") is True
    assert engine.stats.saved_count == 1
    assert engine.is_saved("T-001")
    assert len(engine.tenders) == 20


@pytest.mark.asyncio
async def test_mode_filtering_everything_reports_reason(make_engine):
    engine = make_engine(mode=ViewMode.SAVED)
    engine.start()
    await engine.settle()

    state = engine.state
    assert state.status is ViewStatus.EMPTY
    assert state.empty_reason is EmptyReason.FILTERED_BY_MODE


@pytest.mark.asyncio
async def test_no_results(make_engine):
    engine = make_engine()
    engine.start()
    await engine.settle()
    engine.set_search("zeppelin")
    await engine.settle()

    state = engine.state
    assert state.status is ViewStatus.EMPTY
    assert state.empty_reason is EmptyReason.NO_RESULTS
    assert state.total_count == 0
    assert state.total_pages == 1
    assert not state.shows_pagination


@pytest.mark.asyncio
async def test_failure_then_retry(make_engine, gateway):
    gateway.fail_next("service down")
    engine = make_engine()
    engine.start()
    await engine.settle()

    state = engine.state
    assert state.status is ViewStatus.ERROR
    assert state.error is not None
    assert state.error.retryable
    assert "service down" in state.error.message

    engine.retry()
    await engine.settle()
    assert engine.state.status is ViewStatus.READY
    assert engine.state.error is None


@pytest.mark.asyncio
async def test_failure_keeps_previous_results(make_engine, gateway):
    engine = make_engine()
    engine.start()
    await engine.settle()

    gateway.fail_next()
    engine.refresh()
    await engine.settle()

    state = engine.state
    assert state.status is ViewStatus.ERROR
    assert [t.id for t in state.tenders] == FIRST_PAGE_IDS


@pytest.mark.asyncio
async def test_clear_all_resets_filters_page_and_mode(make_engine, gateway):
    engine = make_engine()
    engine.start()
    await engine.settle()
    engine.set_search("clinic")
    await engine.settle()
    engine.activate_urgent()

    engine.clear_all()
    await engine.settle()

    assert engine.criteria.is_default
    assert engine.mode is ViewMode.ALL
    assert gateway.calls[-1] == TenderQuery(page=1, page_size=20)
    assert [t.id for t in engine.tenders] == FIRST_PAGE_IDS


@pytest.mark.asyncio
async def test_clear_all_with_default_criteria_only_resets_mode(make_engine, gateway):
    engine = make_engine(mode=ViewMode.URGENT)
    engine.start()
    await engine.settle()

    assert engine.clear_all() is None
    assert engine.mode is ViewMode.ALL
    assert len(engine.tenders) == 20
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_shrinking_corpus_moves_to_last_existing_page(make_engine, corpus, clock):
    engine = make_engine()
    engine.start()
    await engine.settle()
    engine.set_page(2)
    await engine.settle()

    events: list[EngineEvent] = []
    engine.subscribe(lambda event, _: events.append(event))
    engine.gateway = InMemoryTenderGateway(corpus[:10], clock=clock)
    engine.refresh()
    await engine.settle()

    assert engine.state.page == 1
    assert engine.state.total_count == 10
    assert EngineEvent.PAGE_CHANGED in events
    assert events[-1] is EngineEvent.RESULTS_LOADED


@pytest.mark.asyncio
async def test_events_and_unsubscribe(make_engine):
    engine = make_engine()
    events: list[EngineEvent] = []
    unsubscribe = engine.subscribe(lambda event, _: events.append(event))

    engine.start()
    await engine.settle()
    engine.set_search("road")
    engine.activate_urgent()
    engine.toggle_save("T-001")
    await engine.settle()

    assert events == [
        EngineEvent.RESULTS_LOADED,
        EngineEvent.FILTER_CHANGED,
        EngineEvent.VIEW_MODE_CHANGED,
        EngineEvent.SAVE_TOGGLED,
        EngineEvent.RESULTS_LOADED,
    ]

    unsubscribe()
    engine.toggle_save("T-001")
    assert len(events) == 5


@pytest.mark.asyncio
async def test_lookup_prefers_held_page(make_engine):
    engine = make_engine()
    engine.start()
    await engine.settle()

    assert (await engine.lookup("T-001")).title.startswith("Road resurfacing")
    assert (await engine.lookup("T-019")).id == "T-019"
    assert await engine.lookup("T-404") is None


@pytest.mark.asyncio
async def test_storage_failure_surfaces_as_warning(make_engine, broken_storage):
    engine = make_engine(registry=SavedTenderRegistry(broken_storage))
    engine.start()
    await engine.settle()

    assert engine.state.warnings == (STORAGE_WARNING,)
    assert engine.toggle_save("T-001") is True
    assert engine.state.saved_ids == frozenset({"T-001"})


@pytest.mark.asyncio
async def test_bookmarks_survive_restart(make_engine, tmp_path):
    url = f"sqlite:///{tmp_path / 'client.db'}"

    first = make_engine(registry=SavedTenderRegistry(SqlClientStorage(url)))
    first.start()
    await first.settle()
    first.toggle_save("T-003")
    first.close()

    second = make_engine(registry=SavedTenderRegistry(SqlClientStorage(url)), mode=ViewMode.SAVED)
    second.start()
    await second.settle()
    assert [t.id for t in second.tenders] == ["T-003"]
    assert second.stats.saved_count == 1


@pytest.mark.asyncio
async def test_closed_engine_refuses_new_fetches(make_engine):
    engine = make_engine()
    task = engine.start()
    engine.close()
    await asyncio.wait([task])

    assert task.cancelled()
    with pytest.raises(RuntimeError):
        engine.refresh()


class TestRequestOrdering:
    @pytest.mark.asyncio
    async def test_new_query_cancels_the_one_in_flight(self, make_engine, gateway):
        controlled = ControlledGateway(gateway)
        engine = make_engine(gateway=controlled)

        first = engine.start()
        await wait_for_pending(controlled, 1)
        second = engine.set_industries(["ICT & Software"])
        await asyncio.wait([first])
        assert first.cancelled()

        await wait_for_pending(controlled, 2)
        controlled.pending[1][1].set()
        await engine.settle()

        assert second.done()
        assert [t.id for t in engine.tenders] == ICT_IDS

    @pytest.mark.asyncio
    async def test_late_response_never_overwrites_newer_one(self, make_engine, gateway):
        stubborn = StubbornGateway(gateway)
        engine = make_engine(gateway=stubborn)

        first = engine.start()
        await wait_for_pending(stubborn, 1)
        second = engine.set_industries(["ICT & Software"])
        await wait_for_pending(stubborn, 2)

        # Newer query answers first, then the stale one arrives
        stubborn.pending[1][1].set()
        await asyncio.wait([second])
        stubborn.pending[0][1].set()
        await asyncio.wait([first])

        assert not first.cancelled()
        assert [t.id for t in engine.tenders] == ICT_IDS
        assert engine.state.total_count == 3

    @pytest.mark.asyncio
    async def test_stale_failure_is_ignored(self, make_engine, gateway):
        stubborn = StubbornGateway(gateway)
        engine = make_engine(gateway=stubborn)

        first = engine.start()
        await wait_for_pending(stubborn, 1)
        second = engine.set_search("road")
        await wait_for_pending(stubborn, 2)
        stubborn.pending[1][1].set()
        await asyncio.wait([second])

        gateway.fail_next("late failure")
        stubborn.pending[0][1].set()
        await asyncio.wait([first])

        assert engine.state.status is ViewStatus.READY
        assert engine.state.error is None

    @pytest.mark.asyncio
    async def test_response_arriving_after_close_is_discarded(self, make_engine, gateway):
        stubborn = StubbornGateway(gateway)
        engine = make_engine(gateway=stubborn)
        events: list[EngineEvent] = []
        engine.subscribe(lambda event, _: events.append(event))

        task = engine.start()
        await wait_for_pending(stubborn, 1)
        engine.close()
        stubborn.pending[0][1].set()
        await asyncio.wait([task])

        assert not task.cancelled()
        assert task.exception() is None
        assert events == []
        assert engine.fetched_tenders == ()
        assert engine.state.status is ViewStatus.LOADING

    @pytest.mark.asyncio
    async def test_shrunk_corpus_after_close_schedules_nothing(self, make_engine, gateway, clock):
        engine = make_engine()
        engine.start()
        await engine.settle()
        engine.set_page(2)
        await engine.settle()

        stubborn = StubbornGateway(InMemoryTenderGateway(gateway.tenders[:5], clock=clock))
        engine.gateway = stubborn
        task = engine.refresh()
        await wait_for_pending(stubborn, 1)
        engine.close()
        stubborn.pending[0][1].set()
        await asyncio.wait([task])

        assert task.exception() is None
        assert engine.state.page == 2
