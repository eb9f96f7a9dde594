"""Tender payload normalization."""

from .canonical import Tender, TenderPayloadError
from .parsing import coerce_str_list, ensure_utc, normalize_whitespace, parse_timestamp

__all__ = [
    "Tender",
    "TenderPayloadError",
    "coerce_str_list",
    "ensure_utc",
    "normalize_whitespace",
    "parse_timestamp",
]
