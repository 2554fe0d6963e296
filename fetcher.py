#!/usr/bin/env python3
"""
Timeout-bounded HTTP retrieval.

Each call performs a single GET under a hard deadline. When the deadline
fires the request is cancelled and TimedOut is raised; connection errors,
non-200 statuses and undecodable bodies are mapped onto the shared error
taxonomy so the retry policy can treat every failure the same way.
"""

from asyncio import wait_for, TimeoutError
import json
from typing import Any, Dict, List, Mapping, Optional

from aiohttp import ClientSession, ClientError

from config import config, get_logger
from errors import HttpError, NetworkError, ParseError, TimedOut
from telemetry import trace_span

logger = get_logger("fetcher")

# HTTP status codes
HTTP_OK = 200


def _format_client_error(error: ClientError) -> str:
    """Describe aiohttp client errors with any available status/errno."""
    parts: List[str] = [error.__class__.__name__]
    status = getattr(error, 'status', None)
    if status is not None:
        parts.append(f"status={status}")
    os_error = getattr(error, 'os_error', None)
    if os_error is not None:
        errno = getattr(os_error, 'errno', None)
        strerror = getattr(os_error, 'strerror', None)
        if errno is not None:
            parts.append(f"errno={errno}")
        if strerror:
            parts.append(str(strerror))
    message = str(error)
    if message:
        parts.append(message)
    return " ".join(parts)


@trace_span(
    "fetch_bytes",
    tracer_name="fetcher",
    attr_from_args=lambda session, url, **kwargs: {"http.url": url},
)
async def fetch_bytes(
    session: ClientSession,
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    timeout: Optional[float] = None,
    headers: Optional[Dict[str, str]] = None,
) -> bytes:
    """GET ``url`` and return the body, failing with a FetchError subclass.

    Args:
        session: Shared aiohttp session
        url: Request URL
        params: Optional query parameters
        timeout: Deadline in seconds (defaults to config.FETCH_TIMEOUT)
        headers: Extra request headers

    Raises:
        TimedOut, NetworkError, HttpError
    """
    deadline = timeout if timeout is not None else config.FETCH_TIMEOUT
    request_headers = {'User-Agent': config.USER_AGENT}
    if headers:
        request_headers.update(headers)

    async def _request() -> bytes:
        async with session.get(url, params=params, headers=request_headers) as response:
            if response.status != HTTP_OK:
                raise HttpError(url, response.status)
            return await response.read()

    try:
        return await wait_for(_request(), timeout=deadline)
    except TimeoutError as e:
        # aiohttp timeouts subclass asyncio.TimeoutError, so they land here too
        logger.warning(f"Timeout fetching {url} after {deadline:g}s")
        raise TimedOut(url, deadline) from e
    except ClientError as e:
        detail = _format_client_error(e)
        logger.warning(f"Error fetching {url}: {detail}")
        raise NetworkError(url, detail) from e


async def fetch_json(
    session: ClientSession,
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    timeout: Optional[float] = None,
) -> Any:
    """GET ``url`` and decode a JSON body.

    Raises:
        TimedOut, NetworkError, HttpError, ParseError
    """
    body = await fetch_bytes(
        session,
        url,
        params=params,
        timeout=timeout,
        headers={'Accept': 'application/json'},
    )
    try:
        return json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning(f"Invalid JSON from {url}: {e}")
        raise ParseError(url, str(e)) from e
