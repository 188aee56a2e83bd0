"""Upstream fetch with the fixed browser header set and a wall-clock timeout.

``UpstreamFetcher.fetch`` never raises for upstream trouble; it returns
either an :class:`UpstreamResponse` or a :class:`FetchFailure` tagged with a
:class:`~streamproxy.errors.FailureKind`.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Union

import httpx
import structlog

from streamproxy.config import UPSTREAM_HEADERS
from streamproxy.errors import FailureKind

log = structlog.get_logger(__name__)

DEFAULT_CONTENT_TYPE = "text/plain"


@dataclass(frozen=True)
class UpstreamResponse:
    url: str
    status_code: int
    status_text: str
    content_type: str
    body: bytes


@dataclass(frozen=True)
class FetchFailure:
    kind: FailureKind
    detail: str = ""


FetchResult = Union[UpstreamResponse, FetchFailure]


class UpstreamFetcher:
    def __init__(self, client: httpx.AsyncClient, timeout: float = 30.0) -> None:
        self._client = client
        self._timeout = timeout

    async def fetch(self, url: str) -> FetchResult:
        log.debug("upstream_fetch", url=url)
        try:
            # wait_for cancels _get on expiry; leaving client.stream() closes the connection
            return await asyncio.wait_for(self._get(url), timeout=self._timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            log.warning("upstream_timeout", url=url, timeout=self._timeout, error=str(exc))
            return FetchFailure(FailureKind.TIMEOUT, "Request timed out")
        except httpx.TransportError as exc:
            log.warning("upstream_network_error", url=url, error=repr(exc))
            return FetchFailure(FailureKind.NETWORK, str(exc))
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.warning("upstream_error", url=url, error=repr(exc))
            return FetchFailure(FailureKind.UNKNOWN, str(exc) or type(exc).__name__)

    async def _get(self, url: str) -> FetchResult:
        async with self._client.stream(
            "GET",
            url,
            headers=dict(UPSTREAM_HEADERS),
            follow_redirects=True,
        ) as resp:
            if resp.status_code == 403:
                log.warning("upstream_forbidden", url=url)
                return FetchFailure(FailureKind.FORBIDDEN, resp.reason_phrase)

            body = await resp.aread()

        log.info(
            "upstream_response",
            url=url,
            status=resp.status_code,
            content_type=resp.headers.get("Content-Type"),
            size=len(body),
        )
        return UpstreamResponse(
            url=url,
            status_code=resp.status_code,
            status_text=resp.reason_phrase,
            content_type=resp.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE,
            body=body,
        )
