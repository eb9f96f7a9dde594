"""Fetch utilities - retries for remote calls."""

from .retries import RetryConfig, retry_async

__all__ = [
    "RetryConfig",
    "retry_async",
]
