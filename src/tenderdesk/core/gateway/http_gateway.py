"""
HTTP tender gateway using httpx.

Queries the remote tender service with:
- Persistent connection pooling
- Retry with exponential backoff on transient failures
- Strict payload validation (malformed responses become QueryFailed)
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from tenderdesk import __version__
from tenderdesk.core.config.models import GatewayConfig
from tenderdesk.core.errors import QueryFailed
from tenderdesk.core.fetch.retries import RetryConfig, retry_async
from tenderdesk.core.normalize import Tender, TenderPayloadError

from .base import CorpusAggregates, TenderPage, TenderQuery, TenderQueryGateway

logger = logging.getLogger(__name__)


# Status codes that should trigger retry
RETRY_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class TransientStatusError(Exception):
    """Server answered with a status worth retrying."""

    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, (httpx.TransportError, TransientStatusError))


class HttpTenderGateway(TenderQueryGateway):
    """Tender gateway backed by a JSON HTTP endpoint.

    Expected listing response::

        {"tenders": [{...}, ...], "count": 42, "aggregates": {...}}

    ``total_count`` / ``totalCount`` are accepted in place of ``count``;
    ``aggregates`` is optional.
    """

    def __init__(
        self,
        base_url: str,
        endpoint: str = "/api/tenders",
        timeout: float = 15.0,
        max_retries: int = 3,
        retry_backoff: float = 2.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_config: RetryConfig | None = None,
    ):
        """Initialize HTTP gateway.

        Args:
            base_url: Tender service base URL
            endpoint: Path of the listing endpoint
            timeout: Request timeout in seconds
            max_retries: Retries after the first attempt
            retry_backoff: Exponential backoff multiplier
            headers: Extra headers for all requests
            transport: Custom httpx transport (tests use httpx.MockTransport)
            retry_config: Override the retry policy entirely
        """
        self.base_url = base_url.rstrip("/")
        self.endpoint = "/" + endpoint.lstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig.from_gateway(
            max_retries,
            retry_backoff,
            should_retry=_is_transient,
        )
        self.headers = {
            "Accept": "application/json",
            "User-Agent": f"tenderdesk/{__version__}",
            **(headers or {}),
        }
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: GatewayConfig, **kwargs: Any) -> "HttpTenderGateway":
        return cls(
            base_url=config.base_url,
            endpoint=config.endpoint,
            timeout=config.timeout_seconds,
            max_retries=config.max_retries,
            retry_backoff=config.retry_backoff_factor,
            headers=config.headers,
            **kwargs,
        )

    @property
    def name(self) -> str:
        return "http"

    @property
    def listing_url(self) -> str:
        return f"{self.base_url}{self.endpoint}"

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers=self.headers,
                transport=self._transport,
            )
        return self._client

    async def _get_once(self, url: str, params: list[tuple[str, str | int]] | None) -> httpx.Response:
        client = await self._ensure_client()
        response = await client.get(url, params=params)
        if response.status_code in RETRY_STATUS_CODES:
            raise TransientStatusError(response)
        return response

    async def _get(self, url: str, params: list[tuple[str, str | int]] | None = None) -> httpx.Response:
        """GET with retries; every failure mode ends as QueryFailed."""
        try:
            return await retry_async(self._get_once, url, params, config=self.retry_config)
        except TransientStatusError as e:
            raise QueryFailed(
                f"Tender service unavailable (HTTP {e.response.status_code})",
                url=url,
                status_code=e.response.status_code,
                cause=e,
            ) from e
        except httpx.TimeoutException as e:
            raise QueryFailed(f"Tender service timed out: {url}", url=url, cause=e) from e
        except httpx.HTTPError as e:
            raise QueryFailed(f"Cannot reach tender service: {e}", url=url, cause=e) from e

    @staticmethod
    def _json(response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise QueryFailed(
                "Tender service returned invalid JSON",
                url=url,
                status_code=response.status_code,
                cause=e,
            ) from e

    async def query(self, request: TenderQuery) -> TenderPage:
        url = self.listing_url
        response = await self._get(url, request.to_params())

        if response.status_code >= 400:
            raise QueryFailed(
                f"Tender query rejected (HTTP {response.status_code})",
                url=url,
                status_code=response.status_code,
                retryable=False,
            )

        body = self._json(response, url)
        return self._parse_page(body, request, url)

    def _parse_page(self, body: Any, request: TenderQuery, url: str) -> TenderPage:
        if not isinstance(body, dict) or not isinstance(body.get("tenders"), list):
            raise QueryFailed("Tender service response has no 'tenders' list", url=url)

        if body.get("error"):
            raise QueryFailed(f"Tender service error: {body['error']}", url=url)

        tenders: list[Tender] = []
        for item in body["tenders"]:
            try:
                tenders.append(Tender.from_dict(item))
            except TenderPayloadError as e:
                logger.warning("Skipping malformed tender record: %s", e, extra={"url": url})

        raw_count = next(
            (body[key] for key in ("count", "total_count", "totalCount") if body.get(key) is not None),
            None,
        )
        if raw_count is None:
            # Lower bound: everything before this page plus what it holds
            total_count = request.offset + len(tenders)
        else:
            try:
                total_count = max(0, int(raw_count))
            except (TypeError, ValueError) as e:
                raise QueryFailed(f"Invalid total count: {raw_count!r}", url=url, cause=e) from e

        aggregates = None
        if isinstance(body.get("aggregates"), dict):
            try:
                aggregates = CorpusAggregates.from_dict(body["aggregates"])
            except (KeyError, TypeError, ValueError):
                logger.warning("Ignoring incomplete aggregates block", extra={"url": url})

        logger.debug(
            "Fetched %d tenders (total %d)",
            len(tenders),
            total_count,
            extra={"url": url, "page": request.page},
        )
        return TenderPage(tenders=tuple(tenders), total_count=total_count, aggregates=aggregates)

    async def get(self, tender_id: str) -> Tender | None:
        url = f"{self.listing_url}/{quote(tender_id, safe='')}"
        response = await self._get(url)

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise QueryFailed(
                f"Tender lookup rejected (HTTP {response.status_code})",
                url=url,
                status_code=response.status_code,
                retryable=False,
            )

        body = self._json(response, url)
        # Accept either the bare record or {"tender": {...}}
        if isinstance(body, dict) and "tender" in body:
            if body["tender"] is None:
                return None
            body = body["tender"]
        try:
            return Tender.from_dict(body)
        except TenderPayloadError as e:
            raise QueryFailed(f"Malformed tender record: {e}", url=url, cause=e) from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
