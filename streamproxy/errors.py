"""Error taxonomy of the proxy and the JSON responses it maps to."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from typing import Any, Optional

from fastapi.responses import JSONResponse

from streamproxy.config import CORS_HEADERS, UPSTREAM_HEADERS


class FailureKind(enum.Enum):
    MISSING_PARAMETER = 400
    FORBIDDEN = 403
    UNKNOWN = 500
    NETWORK = 502
    TIMEOUT = 504

    @property
    def status_code(self) -> int:
        return self.value


_MESSAGES = {
    FailureKind.TIMEOUT: "Request timed out",
    FailureKind.NETWORK: "Network error when trying to fetch resource",
}


def error_response(status_code: int, body: Mapping[str, Any]) -> JSONResponse:
    return JSONResponse(content=dict(body), status_code=status_code, headers=dict(CORS_HEADERS))


def missing_parameter() -> JSONResponse:
    return error_response(
        FailureKind.MISSING_PARAMETER.status_code, {"error": "No URL provided"}
    )


def upstream_forbidden() -> JSONResponse:
    """403 echoing the header table we sent, to diagnose upstream blocking."""
    return error_response(
        FailureKind.FORBIDDEN.status_code,
        {
            "message": "Access denied by target server",
            "error": "The streaming server returned a 403 Forbidden error",
            "headers": dict(UPSTREAM_HEADERS),
        },
    )


def request_failed(kind: FailureKind, url: Optional[str], detail: str = "") -> JSONResponse:
    """Timeout, network and catch-all failures share one body shape."""
    return error_response(
        kind.status_code,
        {
            "message": "Request failed",
            "error": _MESSAGES.get(kind, detail),
            "url": url,
        },
    )
