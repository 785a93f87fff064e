"""
Error taxonomy for the retrieval pipeline, plus HTTP helpers for routes.

- StoreUnavailable: the store backend could not be reached or failed
- DecodeError: a stored article could not be deserialized
- ExtractionError: fetching or parsing the upstream page failed
"""

from typing import TypeVar

from fastapi import HTTPException

T = TypeVar("T")


class ReadCacheError(Exception):
    """Base class for pipeline errors."""

    pass


class StoreError(ReadCacheError):
    """Raised for any failure reading or writing the store."""

    pass


class StoreUnavailable(StoreError):
    """Raised when the store backend fails a connection or operation."""

    pass


class DecodeError(StoreError):
    """Raised when a stored article payload is corrupt."""

    pass


class ExtractionError(ReadCacheError):
    """Raised when an article cannot be fetched or extracted."""

    def __init__(self, cause: str, url: str | None = None):
        super().__init__(cause)
        self.cause = cause
        self.url = url


def require_resource(resource: T | None, detail: str = "Resource not found") -> T:
    """
    Raise 404 if resource is None, otherwise return the resource.

    Usage:
        url = require_resource(unescape(path) or None, "Article not found")
    """
    if resource is None:
        raise HTTPException(status_code=404, detail=detail)
    return resource


def store_unavailable(error: StoreUnavailable) -> HTTPException:
    """Map a store outage on a read path to 503."""
    return HTTPException(status_code=503, detail=f"Article store unavailable: {error}")
