"""
Exception hierarchy for TenderDesk.

None of these errors is fatal to the tender view; the engine turns each
one into a renderable state (retryable error, silent clamp, or warning).
"""

from __future__ import annotations


class TenderDeskError(Exception):
    """Base exception for all TenderDesk errors."""
    pass


class GatewayError(TenderDeskError):
    """Base exception for tender gateway errors."""
    
    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.cause = cause


class QueryFailed(GatewayError):
    """Gateway call rejected, timed out, or returned an unusable payload.
    
    The engine keeps the previous successful result visible and offers
    a retry.
    """
    
    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
        retryable: bool = True,
    ):
        super().__init__(message, url=url, status_code=status_code, cause=cause)
        self.retryable = retryable


class InvalidPageRequest(TenderDeskError):
    """Page requested outside ``[1, total_pages]``."""
    
    def __init__(self, page: int, total_pages: int):
        super().__init__(f"Page {page} is outside 1..{total_pages}")
        self.page = page
        self.total_pages = total_pages


class StorageUnavailable(TenderDeskError):
    """Durable client storage could not be read or written."""
    
    def __init__(self, message: str, key: str | None = None, cause: Exception | None = None):
        super().__init__(message)
        self.key = key
        self.cause = cause
