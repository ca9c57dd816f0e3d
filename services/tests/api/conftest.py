"""
Fixtures for API tests: an app wired to the fake registry.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from tfmirror.api.app import create_app
from tfmirror.config import CacheConfig, Settings, UpstreamConfig


@pytest.fixture
def make_settings(tmp_path, registry_url) -> Callable[..., Settings]:
    def _make(**cache: object) -> Settings:
        return Settings(
            upstream=UpstreamConfig(url=registry_url),
            cache=CacheConfig(
                dir=str(tmp_path / "cache"),
                spool_dir=str(tmp_path / "spool"),
                **cache,
            ),
        )

    return _make


@pytest.fixture
def app(registry, make_settings) -> FastAPI:
    return create_app(make_settings(), transport=registry.transport)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient]:
    upstream = app.state.upstream
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    await upstream.close()
