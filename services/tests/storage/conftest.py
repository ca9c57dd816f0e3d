"""
Shared fixtures for hash store tests.
"""

from __future__ import annotations

import tempfile
from collections.abc import AsyncGenerator

import pytest_asyncio

from tfmirror.storage.filesystem import FilesystemHashStore
from tfmirror.storage.memory import MemoryHashStore


@pytest_asyncio.fixture
async def fs_store() -> AsyncGenerator[FilesystemHashStore]:
    """Create a FilesystemHashStore in a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        store = FilesystemHashStore(cache_dir=tmpdir)
        yield store
        await store.close()


@pytest_asyncio.fixture
async def memory_store() -> AsyncGenerator[MemoryHashStore]:
    store = MemoryHashStore()
    yield store
    await store.close()
