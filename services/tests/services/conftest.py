"""
Shared fixtures for service tests.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from tfmirror.services.provider_mirror_service import ProviderMirrorService
from tfmirror.services.upstream_client import UpstreamClient
from tfmirror.storage.memory import MemoryHashStore


@pytest.fixture
def hash_store() -> MemoryHashStore:
    return MemoryHashStore()


@pytest_asyncio.fixture
async def upstream(registry, registry_url) -> AsyncGenerator[UpstreamClient]:
    """UpstreamClient wired to the fake registry."""
    client = UpstreamClient(base_url=registry_url, transport=registry.transport)
    yield client
    await client.close()


@pytest.fixture
def mirror(upstream, hash_store) -> ProviderMirrorService:
    return ProviderMirrorService(upstream, hash_store)
