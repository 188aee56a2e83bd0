"""Shared fixtures: an app with a short timeout and a TestClient running its lifespan."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from streamproxy.app import create_app
from streamproxy.config import Settings


@pytest.fixture()
def settings() -> Settings:
    return Settings(upstream_timeout=2.0, rewrite_tag_uris=False)


@pytest.fixture()
def client(settings: Settings) -> Iterator[TestClient]:
    with TestClient(create_app(settings)) as c:
        yield c
