"""
Hash store protocol for the terraform mirror.

Defines the HashStore Protocol that all hash cache backends must satisfy.
"""

from typing import Protocol, runtime_checkable

from tfmirror.models import PackageKey


@runtime_checkable
class HashStore(Protocol):
    """Protocol defining the h1 hash cache interface.

    All methods are async. Records are permanent once written: archives for
    a fixed provider/version/platform never change upstream.
    """

    async def get(self, key: PackageKey) -> str | None:
        """Return the cached hash for a package, or None if not cached.

        Read failures are reported as None, never raised.
        """
        ...

    async def set(self, key: PackageKey, value: str) -> None:
        """Persist a hash for a package.

        A reader never observes a partially written value.

        Raises:
            StorageError: If the record cannot be written.
        """
        ...

    async def get_all_for_version(
        self, namespace: str, name: str, version: str
    ) -> dict[str, str]:
        """Return every cached hash for a provider version, keyed by platform.

        Platforms without a cached hash are simply absent.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the backend."""
        ...
