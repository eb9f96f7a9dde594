"""HTTP gateway against a mocked tender service."""

from __future__ import annotations

import httpx
import pytest

from tenderdesk.core.config import GatewayConfig
from tenderdesk.core.errors import QueryFailed
from tenderdesk.core.fetch import RetryConfig
from tenderdesk.core.gateway import HttpTenderGateway, TenderQuery
from tenderdesk.core.gateway.http_gateway import _is_transient
from tests.fixtures import TENDER_RECORDS

BASE_URL = "https://tenders.example"


def make_gateway(handler, attempts: int = 3) -> HttpTenderGateway:
    return HttpTenderGateway(
        BASE_URL,
        transport=httpx.MockTransport(handler),
        retry_config=RetryConfig(
            max_attempts=attempts,
            min_wait=0,
            max_wait=0,
            jitter=False,
            should_retry=_is_transient,
        ),
    )


@pytest.mark.asyncio
async def test_query_sends_filters_and_parses_page():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"tenders": TENDER_RECORDS[:2], "count": 42})

    async with make_gateway(handler) as gateway:
        page = await gateway.query(
            TenderQuery(page=2, page_size=2, industries=frozenset({"Construction"}), province="GP", search="road")
        )

    assert page.ids == ["T-001", "T-002"]
    assert page.total_count == 42
    assert page.aggregates is None

    request = seen[0]
    assert request.url.path == "/api/tenders"
    assert request.url.params.get_list("industry") == ["Construction"]
    assert request.url.params["page"] == "2"
    assert request.url.params["limit"] == "2"
    assert request.url.params["province"] == "GP"
    assert request.url.params["search"] == "road"


@pytest.mark.asyncio
async def test_query_without_filters_sends_only_paging():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"tenders": [], "count": 0})

    async with make_gateway(handler) as gateway:
        await gateway.query(TenderQuery())

    assert set(seen[0].url.params.keys()) == {"page", "limit"}


@pytest.mark.asyncio
async def test_alternative_count_keys_and_aggregates():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "tenders": TENDER_RECORDS[:1],
            "totalCount": 7,
            "aggregates": {"total": 7, "this_week": 1, "this_month": 3, "urgent": 2},
        })

    async with make_gateway(handler) as gateway:
        page = await gateway.query(TenderQuery())

    assert page.total_count == 7
    assert page.aggregates is not None
    assert page.aggregates.urgent == 2


@pytest.mark.asyncio
async def test_missing_count_falls_back_to_lower_bound():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"tenders": TENDER_RECORDS[:3]})

    async with make_gateway(handler) as gateway:
        page = await gateway.query(TenderQuery(page=3, page_size=10))

    assert page.total_count == 23


@pytest.mark.asyncio
async def test_malformed_records_are_skipped():
    records = [TENDER_RECORDS[0], {"title": "no id or dates"}, TENDER_RECORDS[1]]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"tenders": records, "count": 3})

    async with make_gateway(handler) as gateway:
        page = await gateway.query(TenderQuery())

    assert page.ids == ["T-001", "T-002"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"count": 3},
        {"tenders": "nope"},
        {"tenders": [], "error": "database offline"},
        {"tenders": [], "count": "many"},
    ],
)
async def test_unusable_payload_raises_query_failed(body):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    async with make_gateway(handler) as gateway:
        with pytest.raises(QueryFailed):
            await gateway.query(TenderQuery())


@pytest.mark.asyncio
async def test_invalid_json_raises_query_failed():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>oops</html>")

    async with make_gateway(handler) as gateway:
        with pytest.raises(QueryFailed, match="invalid JSON"):
            await gateway.query(TenderQuery())


@pytest.mark.asyncio
async def test_transient_status_is_retried_then_succeeds():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={"tenders": [], "count": 0})

    async with make_gateway(handler) as gateway:
        page = await gateway.query(TenderQuery())

    assert page.total_count == 0
    assert calls["n"] == 3


@pytest.mark.asyncio
async def test_exhausted_retries_raise_retryable_failure():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(503)

    async with make_gateway(handler, attempts=2) as gateway:
        with pytest.raises(QueryFailed) as exc_info:
            await gateway.query(TenderQuery())

    assert calls["n"] == 2
    assert exc_info.value.status_code == 503
    assert exc_info.value.retryable


@pytest.mark.asyncio
async def test_connection_error_becomes_query_failed():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with make_gateway(handler, attempts=1) as gateway:
        with pytest.raises(QueryFailed, match="Cannot reach"):
            await gateway.query(TenderQuery())


@pytest.mark.asyncio
async def test_client_error_is_not_retried():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(400, json={"error": "bad province"})

    async with make_gateway(handler) as gateway:
        with pytest.raises(QueryFailed) as exc_info:
            await gateway.query(TenderQuery())

    assert calls["n"] == 1
    assert exc_info.value.status_code == 400
    assert not exc_info.value.retryable


@pytest.mark.asyncio
async def test_get_variants():
    def handler(request: httpx.Request) -> httpx.Response:
        tender_id = request.url.path.rsplit("/", 1)[-1]
        if tender_id == "T-001":
            return httpx.Response(200, json=TENDER_RECORDS[0])
        if tender_id == "T-002":
            return httpx.Response(200, json={"tender": TENDER_RECORDS[1]})
        if tender_id == "gone":
            return httpx.Response(200, json={"tender": None})
        return httpx.Response(404)

    async with make_gateway(handler) as gateway:
        assert (await gateway.get("T-001")).id == "T-001"
        assert (await gateway.get("T-002")).id == "T-002"
        assert await gateway.get("gone") is None
        assert await gateway.get("T-404") is None


def test_from_config():
    gateway = HttpTenderGateway.from_config(
        GatewayConfig(base_url="https://api.example/", endpoint="v1/tenders", headers={"X-Api-Key": "k"})
    )
    assert gateway.listing_url == "https://api.example/v1/tenders"
    assert gateway.headers["X-Api-Key"] == "k"
    assert gateway.retry_config.max_attempts == 4
