"""Global test setup.

Roles:
- Pinned clock and the shared tender corpus
- In-memory gateway and storage fakes
- Reset of process-wide state (logging handlers, cached DB engines)
"""

from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from tenderdesk.core.errors import StorageUnavailable
from tenderdesk.core.gateway import InMemoryTenderGateway
from tenderdesk.core.normalize import Tender
from tenderdesk.engine import SavedTenderRegistry, TenderDiscoveryEngine
from tenderdesk.persistence import MemoryClientStorage
from tenderdesk.persistence.db import dispose_engines
from tenderdesk.persistence.storage import ClientStorage
from tests.fixtures import NOW, TENDER_RECORDS


@pytest.fixture(autouse=True)
def reset_global_state():
    """Each test starts with no tenderdesk log handlers and no pooled engines."""
    yield
    logger = logging.getLogger("tenderdesk")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    dispose_engines()


class BrokenStorage(ClientStorage):
    """Storage whose every call fails, like a full or disabled local store."""

    def __init__(self, fail_reads: bool = True):
        self.fail_reads = fail_reads
        self.write_attempts = 0

    def read(self, key: str) -> str | None:
        if self.fail_reads:
            raise StorageUnavailable("storage disabled", key=key)
        return None

    def write(self, key: str, value: str) -> None:
        self.write_attempts += 1
        raise StorageUnavailable("quota exceeded", key=key)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def corpus() -> list[Tender]:
    return [Tender.from_dict(record) for record in TENDER_RECORDS]


@pytest.fixture
def gateway(corpus, clock) -> InMemoryTenderGateway:
    return InMemoryTenderGateway(corpus, clock=clock)


@pytest.fixture
def storage() -> MemoryClientStorage:
    return MemoryClientStorage()


@pytest.fixture
def broken_storage() -> BrokenStorage:
    return BrokenStorage()


@pytest.fixture
def registry(storage) -> SavedTenderRegistry:
    return SavedTenderRegistry(storage)


@pytest.fixture
def make_engine(gateway, registry, clock):
    """Factory so tests can swap the gateway or registry."""

    def factory(**kwargs) -> TenderDiscoveryEngine:
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("urgent_window", timedelta(days=7))
        return TenderDiscoveryEngine(
            kwargs.pop("gateway", gateway),
            kwargs.pop("registry", registry),
            **kwargs,
        )

    return factory
