#!/usr/bin/env python3
"""Common error types shared across modules.

Every fetch-level failure derives from FetchError so the retry policy and the
failure-tolerant joins can treat them uniformly.
"""

from typing import Dict, Optional


class FetchError(Exception):
    """Base class for failures retrieving or decoding a source response.

    Attributes:
        url: The request URL, when known.
    """

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class TimedOut(FetchError):
    """The request did not complete before its deadline and was cancelled."""

    def __init__(self, url: Optional[str] = None, timeout: float = 0.0):
        super().__init__(f"Timed out after {timeout:g}s", url)
        self.timeout = timeout


class NetworkError(FetchError):
    """Connection-level failure (DNS, refused connection, reset, ...)."""

    def __init__(self, url: Optional[str] = None, detail: str = ""):
        super().__init__(f"Network error: {detail}" if detail else "Network error", url)
        self.detail = detail


class HttpError(FetchError):
    """The server answered with a non-success status."""

    def __init__(self, url: Optional[str] = None, status: int = 0):
        super().__init__(f"HTTP {status}", url)
        self.status = status


class ParseError(FetchError):
    """The response body could not be decoded into the expected shape."""

    def __init__(self, url: Optional[str] = None, detail: str = ""):
        super().__init__(f"Parse error: {detail}" if detail else "Parse error", url)
        self.detail = detail


class AllSourcesFailed(Exception):
    """Every source failed for a query and no cached value was available.

    Distinct from an empty result so callers can offer a retry action.

    Attributes:
        key: The query (topic) that failed.
        errors: Mapping of source name to the last error it raised.
    """

    def __init__(self, key: str, errors: Optional[Dict[str, Exception]] = None):
        self.key = key
        self.errors = errors or {}
        reasons = ", ".join(f"{name}: {err}" for name, err in self.errors.items())
        super().__init__(f"All sources failed for '{key}'" + (f" ({reasons})" if reasons else ""))


__all__ = ["FetchError", "TimedOut", "NetworkError", "HttpError", "ParseError", "AllSourcesFailed"]
