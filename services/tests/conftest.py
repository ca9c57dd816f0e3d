"""
Top-level test configuration for the terraform mirror.
"""

import asyncio
import io
import os
import re
import zipfile
from collections.abc import Callable

import httpx
import pytest

# Ensure test-friendly defaults
os.environ.setdefault("TF_MIRROR_JSON_LOGS", "false")
os.environ.setdefault("TF_MIRROR_LOG_LEVEL", "DEBUG")
os.environ.setdefault("TF_MIRROR_CONFIG_FILE", "/nonexistent/tf-mirror/config.yaml")

REGISTRY_URL = "https://registry.example.com"
RELEASES_HOST = "releases.example.com"

_VERSIONS_PATH = re.compile(r"/v1/providers/([^/]+)/([^/]+)/versions")
_DOWNLOAD_PATH = re.compile(r"/v1/providers/([^/]+)/([^/]+)/([^/]+)/download/([^/]+)/([^/]+)")


class FakeRegistry:
    """Origin registry and release host served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.providers: dict[tuple[str, str], list[dict]] = {}
        self.archives: dict[str, bytes] = {}
        self.failures: dict[str, int] = {}
        self.requests: list[httpx.Request] = []
        self.archive_delay = 0.0

    def add_version(
        self, namespace: str, name: str, version: str, platforms: list[str]
    ) -> None:
        """Register a version; platforms are given as "os_arch" strings."""
        entry = {
            "version": version,
            "protocols": ["5.0"],
            "platforms": [
                {"os": p.split("_", 1)[0], "arch": p.split("_", 1)[1]} for p in platforms
            ],
        }
        self.providers.setdefault((namespace, name), []).append(entry)

    def add_archive(
        self, name: str, version: str, platform: str, data: bytes
    ) -> None:
        self.archives[f"/terraform-provider-{name}_{version}_{platform}.zip"] = data

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    @property
    def archive_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == RELEASES_HOST]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path in self.failures:
            return httpx.Response(self.failures[path], text="upstream failure")

        if request.url.host == RELEASES_HOST:
            if self.archive_delay:
                await asyncio.sleep(self.archive_delay)
            data = self.archives.get(path)
            if data is None:
                return httpx.Response(404, text="not found")
            return httpx.Response(200, content=data)

        if match := _VERSIONS_PATH.fullmatch(path):
            versions = self.providers.get((match[1], match[2]))
            if versions is None:
                return httpx.Response(404, json={"errors": ["Not Found"]})
            return httpx.Response(
                200, json={"id": f"{match[1]}/{match[2]}", "versions": versions, "warnings": None}
            )

        if match := _DOWNLOAD_PATH.fullmatch(path):
            _, name, version, os_, arch = match.groups()
            filename = f"terraform-provider-{name}_{version}_{os_}_{arch}.zip"
            if f"/{filename}" not in self.archives:
                return httpx.Response(404, json={"errors": ["Not Found"]})
            return httpx.Response(
                200,
                json={
                    "protocols": ["5.0"],
                    "os": os_,
                    "arch": arch,
                    "filename": filename,
                    "download_url": f"https://{RELEASES_HOST}/{filename}",
                    "shasum": "0" * 64,
                },
            )

        return httpx.Response(404, json={"errors": ["Not Found"]})


def build_zip(files: dict[str, bytes], date_time: tuple = (2024, 1, 1, 0, 0, 0)) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in files.items():
            zf.writestr(zipfile.ZipInfo(name, date_time=date_time), content)
    return buf.getvalue()


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def make_zip() -> Callable[..., bytes]:
    """Build an in-memory zip archive from a name -> content mapping."""
    return build_zip


@pytest.fixture
def registry_url() -> str:
    return REGISTRY_URL
