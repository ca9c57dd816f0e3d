"""
Filesystem hash store for the terraform mirror.

Uses aiofiles for async I/O against a local directory. One small file per
provider version/platform holds the raw h1 token. Writes go to a uniquely
named sibling file first and are renamed into place, so concurrent writers
of the same record end with one complete value.
"""

from __future__ import annotations

import uuid
from pathlib import Path

import aiofiles
import aiofiles.os

from tfmirror.errors import StorageError
from tfmirror.logging_config import get_logger
from tfmirror.models import PackageKey
from tfmirror.storage.keys import (
    hash_record_dir,
    hash_record_key,
    platform_from_record,
)

logger = get_logger(__name__)


def _check_segment(value: str) -> None:
    if not value or value in (".", "..") or "/" in value or "\\" in value or "\x00" in value:
        raise StorageError(f"Invalid key segment: {value!r}")


class FilesystemHashStore:
    """Hash store backed by the local filesystem."""

    def __init__(self, cache_dir: str) -> None:
        self._root = Path(cache_dir)

        # Ensure root directory exists
        self._root.mkdir(parents=True, exist_ok=True)
        logger.info("Filesystem hash store initialized", cache_dir=str(self._root))

    def _record_path(self, key: PackageKey) -> Path:
        """Resolve a package key to its record path, preventing path traversal."""
        for segment in (key.namespace, key.name, key.version, key.platform):
            _check_segment(segment)
        return self._root / hash_record_key(key.namespace, key.name, key.version, key.platform)

    async def get(self, key: PackageKey) -> str | None:
        try:
            path = self._record_path(key)
            async with aiofiles.open(path) as f:
                value = (await f.read()).strip()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError, StorageError) as e:
            logger.warning("Failed to read hash record", provider=key.provider, error=str(e))
            return None
        return value or None

    async def set(self, key: PackageKey, value: str) -> None:
        path = self._record_path(key)
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "w") as f:
                await f.write(value)
            await aiofiles.os.replace(tmp_path, path)
        except OSError as e:
            try:
                await aiofiles.os.remove(tmp_path)
            except OSError:
                pass
            raise StorageError(f"Failed to write hash record {path}: {e}") from e

    async def get_all_for_version(
        self, namespace: str, name: str, version: str
    ) -> dict[str, str]:
        result: dict[str, str] = {}
        try:
            for segment in (namespace, name, version):
                _check_segment(segment)
        except StorageError:
            return result

        directory = self._root / hash_record_dir(namespace, name)
        try:
            filenames = await aiofiles.os.listdir(directory)
        except FileNotFoundError:
            return result
        except OSError as e:
            logger.warning(
                "Failed to list hash records",
                provider=f"{namespace}/{name}",
                error=str(e),
            )
            return result

        for filename in sorted(filenames):
            platform = platform_from_record(filename, version)
            if platform is None:
                continue
            try:
                async with aiofiles.open(directory / filename) as f:
                    value = (await f.read()).strip()
            except (OSError, UnicodeDecodeError):
                continue
            if value:
                result[platform] = value

        return result

    async def close(self) -> None:
        """No resources to release for filesystem backend."""

    @property
    def root_dir(self) -> Path:
        """The root directory of the hash cache."""
        return self._root
