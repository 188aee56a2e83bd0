"""Tests for the upstream fetcher and its failure classification."""

from __future__ import annotations

import asyncio

import httpx
import pytest
import respx

from streamproxy.config import UPSTREAM_HEADERS
from streamproxy.errors import FailureKind
from streamproxy.fetcher import FetchFailure, UpstreamFetcher, UpstreamResponse

_URL = "https://cdn.example.com/video/master.m3u8"


class TestFetch:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_returns_upstream_response(self) -> None:
        respx.get(_URL).respond(
            200,
            content=b"#EXTM3U\n",
            headers={"Content-Type": "application/vnd.apple.mpegurl"},
        )

        async with httpx.AsyncClient() as client:
            result = await UpstreamFetcher(client).fetch(_URL)

        assert isinstance(result, UpstreamResponse)
        assert result.status_code == 200
        assert result.status_text == "OK"
        assert result.content_type == "application/vnd.apple.mpegurl"
        assert result.body == b"#EXTM3U\n"
        assert result.url == _URL

    @respx.mock
    @pytest.mark.asyncio()
    async def test_sends_header_table_verbatim(self) -> None:
        route = respx.get(_URL).respond(200, content=b"")

        async with httpx.AsyncClient() as client:
            await UpstreamFetcher(client).fetch(_URL)

        sent = route.calls[0].request.headers
        for name, value in UPSTREAM_HEADERS.items():
            assert sent[name] == value

    @respx.mock
    @pytest.mark.asyncio()
    async def test_missing_content_type_defaults_to_text_plain(self) -> None:
        respx.get(_URL).mock(return_value=httpx.Response(200, content=b"abc"))

        async with httpx.AsyncClient() as client:
            result = await UpstreamFetcher(client).fetch(_URL)

        assert isinstance(result, UpstreamResponse)
        assert result.content_type == "text/plain"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_follows_redirects(self) -> None:
        moved = "https://cdn2.example.com/video/master.m3u8"
        respx.get(_URL).respond(302, headers={"Location": moved})
        respx.get(moved).respond(200, content=b"#EXTM3U\n")

        async with httpx.AsyncClient() as client:
            result = await UpstreamFetcher(client).fetch(_URL)

        assert isinstance(result, UpstreamResponse)
        assert result.status_code == 200
        # rewrite base stays the requested URL
        assert result.url == _URL

    @respx.mock
    @pytest.mark.asyncio()
    async def test_forwards_other_error_statuses(self) -> None:
        respx.get(_URL).respond(404, content=b"gone")

        async with httpx.AsyncClient() as client:
            result = await UpstreamFetcher(client).fetch(_URL)

        assert isinstance(result, UpstreamResponse)
        assert result.status_code == 404
        assert result.status_text == "Not Found"


class TestFailures:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_forbidden(self) -> None:
        respx.get(_URL).respond(403)

        async with httpx.AsyncClient() as client:
            result = await UpstreamFetcher(client).fetch(_URL)

        assert isinstance(result, FetchFailure)
        assert result.kind is FailureKind.FORBIDDEN

    @respx.mock
    @pytest.mark.asyncio()
    async def test_network_error(self) -> None:
        respx.get(_URL).mock(side_effect=httpx.ConnectError("connection refused"))

        async with httpx.AsyncClient() as client:
            result = await UpstreamFetcher(client).fetch(_URL)

        assert isinstance(result, FetchFailure)
        assert result.kind is FailureKind.NETWORK

    @respx.mock
    @pytest.mark.asyncio()
    async def test_httpx_timeout(self) -> None:
        respx.get(_URL).mock(side_effect=httpx.ReadTimeout("read timed out"))

        async with httpx.AsyncClient() as client:
            result = await UpstreamFetcher(client).fetch(_URL)

        assert isinstance(result, FetchFailure)
        assert result.kind is FailureKind.TIMEOUT

    @pytest.mark.asyncio()
    async def test_wall_clock_timeout_cancels_request(self) -> None:
        cancelled = asyncio.Event()

        async def stall(request: httpx.Request) -> httpx.Response:
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return httpx.Response(200)

        transport = httpx.MockTransport(stall)
        async with httpx.AsyncClient(transport=transport) as client:
            result = await UpstreamFetcher(client, timeout=0.05).fetch(_URL)

        assert isinstance(result, FetchFailure)
        assert result.kind is FailureKind.TIMEOUT
        assert cancelled.is_set()

    @pytest.mark.asyncio()
    async def test_invalid_url(self) -> None:
        async with httpx.AsyncClient() as client:
            result = await UpstreamFetcher(client).fetch("https://exa mple.com:port/")

        assert isinstance(result, FetchFailure)
        assert result.kind is FailureKind.UNKNOWN
        assert result.detail

    @pytest.mark.asyncio()
    async def test_unsupported_scheme_is_network_error(self) -> None:
        async with httpx.AsyncClient() as client:
            result = await UpstreamFetcher(client).fetch("ftp://example.com/file.ts")

        assert isinstance(result, FetchFailure)
        assert result.kind is FailureKind.NETWORK
