from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from streamproxy import errors
from streamproxy.config import (
    CORS_ALLOW_HEADERS,
    CORS_HEADERS,
    CORS_MAX_AGE,
    CORS_METHODS,
    FETCH_PATH,
    Settings,
)
from streamproxy.errors import FailureKind
from streamproxy.fetcher import FetchFailure, UpstreamFetcher, UpstreamResponse
from streamproxy.rewrite import transform

log = structlog.get_logger(__name__)


def assemble(upstream: UpstreamResponse, rewrite_tags: bool = False) -> Response:
    result = transform(upstream.body, upstream.content_type, upstream.url, rewrite_tags)

    headers = dict(CORS_HEADERS)
    if result.content_type is not None:
        headers["Content-Type"] = result.content_type

    log.info(
        "proxied",
        url=upstream.url,
        status=upstream.status_code,
        status_text=upstream.status_text,
        strategy=result.strategy.value,
        content_type=result.content_type,
    )
    return Response(content=result.body, status_code=upstream.status_code, headers=headers)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        timeout = httpx.Timeout(settings.upstream_timeout)
        async with httpx.AsyncClient(timeout=timeout) as client:
            app.state.fetcher = UpstreamFetcher(client, settings.upstream_timeout)
            yield

    app = FastAPI(title="streamproxy", lifespan=lifespan)

    # answers preflights; regular responses carry CORS_HEADERS themselves
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=CORS_METHODS,
        allow_headers=CORS_ALLOW_HEADERS,
        max_age=CORS_MAX_AGE,
    )

    @app.get(FETCH_PATH)
    async def fetch(request: Request, url: Optional[str] = None) -> Response:
        if not url:
            return errors.missing_parameter()

        try:
            result = await request.app.state.fetcher.fetch(url)
            if isinstance(result, FetchFailure):
                if result.kind is FailureKind.FORBIDDEN:
                    return errors.upstream_forbidden()
                return errors.request_failed(result.kind, url, result.detail)
            return assemble(result, settings.rewrite_tag_uris)
        except Exception as exc:
            log.exception("proxy_failed", url=url)
            return errors.request_failed(FailureKind.UNKNOWN, url, str(exc) or type(exc).__name__)

    @app.get("/")
    async def root():
        return {"message": "Stream Proxy Server"}

    return app
