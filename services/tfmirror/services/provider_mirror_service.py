"""Service layer for the provider network mirror protocol.

Translates the origin registry's version/platform listing into the mirror
protocol's index.json and {version}.json documents, attaching h1 hashes
that earlier downloads have cached.
"""

from tfmirror.errors import VersionNotFound
from tfmirror.logging_config import get_logger
from tfmirror.models import (
    MirrorArchive,
    MirrorIndex,
    MirrorVersion,
    UpstreamVersion,
    platform_string,
)
from tfmirror.services.archive_names import encode_archive_name
from tfmirror.services.upstream_client import UpstreamClient
from tfmirror.storage.protocol import HashStore

logger = get_logger(__name__)


class ProviderMirrorService:
    """Builds mirror protocol documents from origin data and cached hashes."""

    def __init__(self, upstream: UpstreamClient, hash_store: HashStore | None) -> None:
        self._upstream = upstream
        self._hash_store = hash_store

    async def list_versions(self, namespace: str, name: str) -> MirrorIndex:
        """index.json: every version the origin lists, duplicates collapsed."""
        listing = await self._upstream.fetch_versions(namespace, name)
        return MirrorIndex(versions={v.version: {} for v in listing.versions})

    async def get_version(self, namespace: str, name: str, version: str) -> MirrorVersion:
        """{version}.json: one archive per platform, with h1 hashes where known.

        Raises:
            VersionNotFound: If the origin does not list ``version``.
        """
        listing = await self._upstream.fetch_versions(namespace, name)

        target: UpstreamVersion | None = None
        for v in listing.versions:
            if v.version == version:
                target = v
                break

        if target is None:
            raise VersionNotFound(namespace, name, version)

        cached_hashes: dict[str, str] = {}
        if self._hash_store is not None:
            cached_hashes = await self._hash_store.get_all_for_version(namespace, name, version)

        archives: dict[str, MirrorArchive] = {}
        for p in target.platforms:
            platform = platform_string(p.os, p.arch)
            h1 = cached_hashes.get(platform)
            archives[platform] = MirrorArchive(
                url=encode_archive_name(name, version, p.os, p.arch),
                hashes=[h1] if h1 else None,
            )

        logger.debug(
            "Built version document",
            provider=f"{namespace}/{name}",
            version=version,
            platforms=len(archives),
            hashed=sum(1 for a in archives.values() if a.hashes),
        )
        return MirrorVersion(archives=archives)

    async def resolve_download_location(
        self, namespace: str, name: str, version: str, os_: str, arch: str
    ) -> str:
        """Origin download URL for one archive. Never cached: URLs are short-lived."""
        return await self._upstream.resolve_download(namespace, name, version, os_, arch)
