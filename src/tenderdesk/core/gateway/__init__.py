"""Tender query gateways: the engine's only data dependency."""

from .base import (
    DEFAULT_PAGE_SIZE,
    CorpusAggregates,
    TenderPage,
    TenderQuery,
    TenderQueryGateway,
)
from .http_gateway import HttpTenderGateway
from .memory import InMemoryTenderGateway

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "CorpusAggregates",
    "TenderPage",
    "TenderQuery",
    "TenderQueryGateway",
    "HttpTenderGateway",
    "InMemoryTenderGateway",
]
