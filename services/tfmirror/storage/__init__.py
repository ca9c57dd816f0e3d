"""
Hash store layer for the terraform mirror.

Provides init_hash_store() for the app lifespan. The resulting store is
handed to each component explicitly rather than held in a module global.
"""

from __future__ import annotations

from tfmirror.config import CacheConfig, HashStoreBackend
from tfmirror.logging_config import get_logger
from tfmirror.storage.protocol import HashStore

logger = get_logger(__name__)


def init_hash_store(cfg: CacheConfig) -> HashStore | None:
    """Create the hash store backend described by configuration.

    Returns None when hash caching is disabled.
    """
    if not cfg.enabled:
        logger.info("Hash cache disabled")
        return None

    match cfg.backend:
        case HashStoreBackend.FILESYSTEM:
            from tfmirror.storage.filesystem import FilesystemHashStore

            logger.info("Hash cache initialized", backend="filesystem", cache_dir=cfg.dir)
            return FilesystemHashStore(cache_dir=cfg.dir)

        case HashStoreBackend.MEMORY:
            from tfmirror.storage.memory import MemoryHashStore

            logger.info("Hash cache initialized", backend="memory")
            return MemoryHashStore()

    raise ValueError(f"Unsupported hash store backend: {cfg.backend}")
