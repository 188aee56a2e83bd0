"""Settings and the fixed upstream/CORS header tables."""

from __future__ import annotations

from types import MappingProxyType
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]

# Sent verbatim on every upstream fetch; the CDN rejects anything else.
UPSTREAM_HEADERS = MappingProxyType(
    {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36 "
            "OPR/124.0.0.0 (Edition std-2)"
        ),
        "Accept": "*/*",
        "Accept-Encoding": "gzip, deflate, br, zstd",
        "Accept-Language": (
            "en-US,en;q=0.9,ja;q=0.8,fr;q=0.7,zh-CN;q=0.6,zh;q=0.5,"
            "es;q=0.4,nl;q=0.3,pl;q=0.2,vi;q=0.1,zh-TW;q=0.1"
        ),
        "Origin": "https://megacloud.blog",
        "Referer": "https://megacloud.blog/",
        "Sec-Fetch-Site": "cross-site",
        "Sec-Fetch-Mode": "cors",
        "Sec-Fetch-Dest": "empty",
        "Sec-CH-UA-Platform": '"Windows"',
        "Sec-CH-UA": '"Chromium";v="140", "Not=A?Brand";v="24", "Opera GX";v="124"',
        "Sec-CH-UA-Mobile": "?0",
    }
)

CORS_HEADERS = MappingProxyType(
    {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
        "Access-Control-Max-Age": "3600",
    }
)

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_ALLOW_HEADERS = ["Content-Type", "Authorization"]
CORS_MAX_AGE = 3600

FETCH_PATH = "/fetch"


class Settings(BaseSettings):
    """Process configuration, read from ``STREAMPROXY_*`` env vars or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="STREAMPROXY_",
        env_file=".env",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port")
    upstream_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Wall-clock limit for one upstream fetch, body included (seconds)",
    )
    rewrite_tag_uris: bool = Field(
        default=False,
        description="Also rewrite URI= attributes on KEY/MAP/MEDIA/I-FRAME tags",
    )
    log_level: LogLevel = "INFO"
    log_format: LogFormat = "console"
