"""
In-memory hash store.

Keeps records in a dict for the lifetime of the process. Selected with
``cache.backend: memory`` to run the mirror without a writable cache
directory; hashes are then recomputed after every restart.
"""

from tfmirror.models import PackageKey


class MemoryHashStore:
    """Hash store backed by a plain dict."""

    def __init__(self, records: dict[PackageKey, str] | None = None) -> None:
        self._records: dict[PackageKey, str] = dict(records or {})

    async def get(self, key: PackageKey) -> str | None:
        return self._records.get(key)

    async def set(self, key: PackageKey, value: str) -> None:
        self._records[key] = value

    async def get_all_for_version(
        self, namespace: str, name: str, version: str
    ) -> dict[str, str]:
        return {
            key.platform: value
            for key, value in self._records.items()
            if (key.namespace, key.name, key.version) == (namespace, name, version)
        }

    async def close(self) -> None:
        self._records.clear()
