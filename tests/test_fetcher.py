import asyncio

import pytest
from aiohttp import ClientConnectionError

from config import config
from errors import HttpError, NetworkError, ParseError, TimedOut
from fetcher import fetch_bytes, fetch_json


class FakeResponse:
    def __init__(self, status=200, body=b"", delay=0.0, error=None):
        self.status = status
        self._body = body
        self._delay = delay
        self._error = error
        self.cancelled = False

    async def read(self):
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return self._body

    async def __aenter__(self):
        if self._error is not None:
            raise self._error
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.requests = []

    def get(self, url, params=None, headers=None):
        self.requests.append({"url": url, "params": params, "headers": headers})
        return self.response


@pytest.mark.asyncio
async def test_returns_body_and_sends_user_agent():
    session = FakeSession(FakeResponse(body=b"hello"))

    body = await fetch_bytes(session, "https://api.example/x", params={"q": "rust"}, timeout=1.0)

    assert body == b"hello"
    request = session.requests[0]
    assert request["params"] == {"q": "rust"}
    assert request["headers"]["User-Agent"] == config.USER_AGENT


@pytest.mark.asyncio
async def test_deadline_cancels_request_and_raises_timed_out():
    response = FakeResponse(body=b"late", delay=5.0)
    session = FakeSession(response)

    with pytest.raises(TimedOut) as exc_info:
        await fetch_bytes(session, "https://slow.example/feed", timeout=0.05)

    assert exc_info.value.timeout == 0.05
    assert exc_info.value.url == "https://slow.example/feed"
    assert response.cancelled


@pytest.mark.asyncio
async def test_non_200_raises_http_error():
    session = FakeSession(FakeResponse(status=503))

    with pytest.raises(HttpError) as exc_info:
        await fetch_bytes(session, "https://api.example/x", timeout=1.0)

    assert exc_info.value.status == 503


@pytest.mark.asyncio
async def test_connection_error_raises_network_error():
    session = FakeSession(FakeResponse(error=ClientConnectionError("connection reset")))

    with pytest.raises(NetworkError) as exc_info:
        await fetch_bytes(session, "https://api.example/x", timeout=1.0)

    assert "ClientConnectionError" in exc_info.value.detail


@pytest.mark.asyncio
async def test_fetch_json_decodes_body():
    session = FakeSession(FakeResponse(body=b'{"hits": []}'))

    data = await fetch_json(session, "https://api.example/search", timeout=1.0)

    assert data == {"hits": []}
    assert session.requests[0]["headers"]["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_fetch_json_rejects_invalid_body():
    session = FakeSession(FakeResponse(body=b"<html>not json</html>"))

    with pytest.raises(ParseError):
        await fetch_json(session, "https://api.example/search", timeout=1.0)
