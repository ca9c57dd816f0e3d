"""Tests for translating origin listings into mirror protocol documents."""

import pytest

from tfmirror.errors import UpstreamUnavailable, VersionNotFound
from tfmirror.models import PackageKey
from tfmirror.services.provider_mirror_service import ProviderMirrorService


class TestListVersions:
    async def test_lists_versions(self, registry, mirror):
        registry.add_version("hashicorp", "random", "3.5.1", ["linux_amd64"])
        registry.add_version("hashicorp", "random", "3.6.0", ["linux_amd64"])

        index = await mirror.list_versions("hashicorp", "random")

        assert index.model_dump() == {"versions": {"3.5.1": {}, "3.6.0": {}}}

    async def test_duplicate_versions_collapse(self, registry, mirror):
        registry.add_version("hashicorp", "random", "1.0.0", ["linux_amd64"])
        registry.add_version("hashicorp", "random", "1.0.0", ["darwin_arm64"])
        registry.add_version("hashicorp", "random", "2.0.0", ["linux_amd64"])

        index = await mirror.list_versions("hashicorp", "random")

        assert set(index.versions) == {"1.0.0", "2.0.0"}
        assert len(index.versions) == 2

    async def test_upstream_failure_propagates(self, mirror):
        with pytest.raises(UpstreamUnavailable):
            await mirror.list_versions("hashicorp", "unknown")


class TestGetVersion:
    async def test_archives_per_platform(self, registry, mirror):
        registry.add_version("hashicorp", "random", "3.6.0", ["linux_amd64", "darwin_arm64"])

        document = await mirror.get_version("hashicorp", "random", "3.6.0")

        assert document.to_document() == {
            "archives": {
                "linux_amd64": {"url": "terraform-provider-random_3.6.0_linux_amd64.zip"},
                "darwin_arm64": {"url": "terraform-provider-random_3.6.0_darwin_arm64.zip"},
            }
        }

    async def test_hashes_only_for_cached_platforms(self, registry, mirror, hash_store):
        registry.add_version("hashicorp", "random", "3.6.0", ["linux_amd64", "darwin_arm64"])
        await hash_store.set(PackageKey("hashicorp", "random", "3.6.0", "linux_amd64"), "h1:abc=")

        document = (await mirror.get_version("hashicorp", "random", "3.6.0")).to_document()

        assert document["archives"]["linux_amd64"]["hashes"] == ["h1:abc="]
        assert "hashes" not in document["archives"]["darwin_arm64"]

    async def test_hashes_from_other_versions_ignored(self, registry, mirror, hash_store):
        registry.add_version("hashicorp", "random", "3.6.0", ["linux_amd64"])
        await hash_store.set(PackageKey("hashicorp", "random", "3.5.1", "linux_amd64"), "h1:old=")

        document = (await mirror.get_version("hashicorp", "random", "3.6.0")).to_document()

        assert "hashes" not in document["archives"]["linux_amd64"]

    async def test_unknown_version(self, registry, mirror):
        registry.add_version("hashicorp", "random", "3.6.0", ["linux_amd64"])

        with pytest.raises(VersionNotFound):
            await mirror.get_version("hashicorp", "random", "9.9.9")

        assert registry.archive_requests == []

    async def test_hash_cache_disabled(self, registry, upstream):
        registry.add_version("hashicorp", "random", "3.6.0", ["linux_amd64"])
        mirror = ProviderMirrorService(upstream, None)

        document = (await mirror.get_version("hashicorp", "random", "3.6.0")).to_document()

        assert document == {
            "archives": {
                "linux_amd64": {"url": "terraform-provider-random_3.6.0_linux_amd64.zip"}
            }
        }


class TestResolveDownloadLocation:
    async def test_delegates_every_time(self, registry, mirror, make_zip):
        registry.add_archive("random", "3.6.0", "linux_amd64", make_zip({"p": b"p"}))

        first = await mirror.resolve_download_location(
            "hashicorp", "random", "3.6.0", "linux", "amd64"
        )
        second = await mirror.resolve_download_location(
            "hashicorp", "random", "3.6.0", "linux", "amd64"
        )

        assert first == second
        download_calls = [r for r in registry.requests if "/download/" in r.url.path]
        assert len(download_calls) == 2
