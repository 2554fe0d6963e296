#!/usr/bin/env python3
"""
Utility classes and functions shared by the adapters and the orchestrator.

This module contains the retry policy, the failure-tolerant join used by both
the multi-source fan-out and the batch scheduler, and small parsing helpers.
"""

from asyncio import CancelledError, gather, sleep
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from calendar import timegm
from time import time
from typing import Any, Awaitable, Callable, Iterable, List, Optional, TypeVar

import feedparser
from bs4 import BeautifulSoup

from config import get_logger
from models import FetchOutcome

logger = get_logger("utils")

T = TypeVar("T")


class RetryHelper:
    """Bounded retry with a pause between attempts.

    The delay before attempt ``n`` (1-based, never before the first) is
    ``delay * backoff ** (n - 1)`` capped at ``max_delay``; with the default
    ``backoff=1.0`` this is a fixed delay.
    """

    def __init__(
        self,
        max_attempts: int = 2,
        delay: float = 1.5,
        backoff: float = 1.0,
        max_delay: float = 60.0,
        sleep_func: Callable[[float], Awaitable[Any]] = sleep,
    ):
        """Initialize the retry helper.

        Args:
            max_attempts: Total number of attempts, including the first one
            delay: Seconds to wait between attempts
            backoff: Multiplier applied to the delay after each retry
            max_delay: Upper bound for any single pause
            sleep_func: Awaitable sleep, injectable for tests
        """
        self.max_attempts = max(1, int(max_attempts))
        self.delay = delay
        self.backoff = backoff
        self.max_delay = max_delay
        self._sleep = sleep_func

    def calculate_delay(self, attempt: int) -> float:
        """Return the pause preceding ``attempt`` (1-based retry number)."""
        if attempt <= 0:
            return 0.0
        return min(self.delay * (self.backoff ** (attempt - 1)), self.max_delay)

    async def sleep_for_attempt(self, attempt: int):
        delay = self.calculate_delay(attempt)
        if delay > 0:
            logger.debug(f"Retry delay: sleeping for {delay:.2f} seconds")
            await self._sleep(delay)

    async def run(self, op: Callable[[], Awaitable[T]], label: str = "operation") -> T:
        """Await ``op()`` until it succeeds or the attempt budget is spent.

        Any Exception triggers a retry; the last one is re-raised once all
        attempts fail. Cancellation is never retried.
        """
        last_error: Optional[Exception] = None
        for attempt in range(self.max_attempts):
            if attempt > 0:
                await self.sleep_for_attempt(attempt)
            try:
                return await op()
            except CancelledError:
                raise
            except Exception as e:
                last_error = e
                if attempt + 1 < self.max_attempts:
                    logger.warning(
                        "Retry %d/%d for %s due to error: %s",
                        attempt + 1,
                        self.max_attempts - 1,
                        label,
                        e,
                    )
        logger.error(f"Giving up on {label} after {self.max_attempts} attempts: {last_error}")
        raise last_error


async def settle_all(tasks: Iterable[Callable[[], Awaitable[List[Any]]]]) -> List[FetchOutcome]:
    """Run every task concurrently and collect one FetchOutcome per task, in order.

    Failures become values; one task raising never aborts its siblings.
    """
    results = await gather(*(task() for task in tasks), return_exceptions=True)
    outcomes: List[FetchOutcome] = []
    for result in results:
        if isinstance(result, Exception):
            outcomes.append(FetchOutcome.failure(result))
        elif isinstance(result, BaseException):
            # Cancellation and interpreter exits must not be turned into values
            raise result
        else:
            outcomes.append(FetchOutcome.success(result or []))
    return outcomes


def html_to_text(html_content: Optional[str], max_length: int = 500) -> str:
    """Reduce an HTML fragment to whitespace-normalized plain text."""
    if not html_content:
        return ""
    text = BeautifulSoup(html_content, "html.parser").get_text(" ")
    text = " ".join(text.split())
    if len(text) > max_length:
        text = text[:max_length - 3].rstrip() + "..."
    return text


def to_timestamp(value: Any, default: Optional[int] = None) -> int:
    """Convert assorted date representations into a Unix timestamp.

    Accepts epoch numbers, datetimes, time structs and ISO-8601 / RFC-822
    strings. Anything unparseable yields ``default`` (now, when not given).
    """
    fallback = int(time()) if default is None else default
    if value in (None, ''):
        return fallback

    if isinstance(value, bool):
        return fallback

    if isinstance(value, (int, float)):
        return int(value) if value > 0 else fallback

    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return int(dt.timestamp())

    if isinstance(value, (list, tuple)):
        try:
            return int(timegm(tuple(value)))
        except (OverflowError, ValueError, OSError, TypeError):
            return fallback

    if isinstance(value, str):
        parsed = _parse_date_string(value.strip())
        return parsed if parsed is not None else fallback

    return fallback


def _parse_date_string(date_str: str) -> Optional[int]:
    if not date_str:
        return None
    try:
        dt = datetime.fromisoformat(date_str.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.timestamp())
    except ValueError:
        pass
    try:
        dt = parsedate_to_datetime(date_str)
        if dt:
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return int(dt.timestamp())
    except (TypeError, ValueError, OverflowError):
        pass
    try:
        time_struct = feedparser._parse_date(date_str)
        if time_struct:
            return int(timegm(time_struct))
    except (ValueError, TypeError, AttributeError, OSError):
        pass
    return None


def safe_int(value: Any) -> int:
    """Coerce a count field to a non-negative int, defaulting to 0."""
    try:
        number = int(value or 0)
    except (TypeError, ValueError):
        return 0
    return max(0, number)
