"""Tests for the origin registry client."""

import httpx
import pytest

from tfmirror.errors import TransportError, UpstreamError
from tfmirror.services.upstream_client import USER_AGENT, UpstreamClient, build_transport


def _client(handler, **kwargs) -> UpstreamClient:
    return UpstreamClient(
        base_url="https://registry.example.com/",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestBuildTransport:
    def test_direct(self):
        assert isinstance(build_transport(""), httpx.AsyncHTTPTransport)

    def test_socks5(self):
        assert isinstance(build_transport("127.0.0.1:1080"), httpx.AsyncHTTPTransport)

    def test_socks5_with_scheme(self):
        assert isinstance(build_transport("socks5://127.0.0.1:1080"), httpx.AsyncHTTPTransport)


class TestFetchVersions:
    async def test_parses_listing(self, registry):
        registry.add_version("hashicorp", "random", "3.6.0", ["linux_amd64", "darwin_arm64"])
        client = _client(registry.handle)

        listing = await client.fetch_versions("hashicorp", "random")

        assert [v.version for v in listing.versions] == ["3.6.0"]
        assert [(p.os, p.arch) for p in listing.versions[0].platforms] == [
            ("linux", "amd64"),
            ("darwin", "arm64"),
        ]
        await client.close()

    async def test_sends_identifying_headers(self, registry):
        registry.add_version("hashicorp", "random", "3.6.0", ["linux_amd64"])
        client = _client(registry.handle)

        await client.fetch_versions("hashicorp", "random")

        request = registry.requests[-1]
        assert request.url == "https://registry.example.com/v1/providers/hashicorp/random/versions"
        assert request.headers["User-Agent"] == USER_AGENT
        assert request.headers["Accept"] == "application/json"
        await client.close()

    async def test_non_success_status(self, registry):
        client = _client(registry.handle)

        with pytest.raises(UpstreamError) as exc_info:
            await client.fetch_versions("hashicorp", "missing")

        assert exc_info.value.status_code == 404
        await client.close()

    async def test_invalid_json(self):
        client = _client(lambda request: httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(UpstreamError):
            await client.fetch_versions("hashicorp", "random")
        await client.close()

    async def test_connection_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)

        with pytest.raises(TransportError):
            await client.fetch_versions("hashicorp", "random")
        await client.close()


class TestResolveDownload:
    async def test_returns_download_url(self, registry, make_zip):
        registry.add_archive("random", "3.6.0", "linux_amd64", make_zip({"p": b"p"}))
        client = _client(registry.handle)

        url = await client.resolve_download("hashicorp", "random", "3.6.0", "linux", "amd64")

        assert url == "https://releases.example.com/terraform-provider-random_3.6.0_linux_amd64.zip"
        assert registry.requests[-1].url.path == (
            "/v1/providers/hashicorp/random/3.6.0/download/linux/amd64"
        )
        await client.close()

    async def test_missing_download_url(self):
        client = _client(lambda request: httpx.Response(200, json={"filename": "x.zip"}))

        with pytest.raises(UpstreamError):
            await client.resolve_download("hashicorp", "random", "3.6.0", "linux", "amd64")
        await client.close()


class TestOpenDownload:
    async def test_streams_body(self, registry):
        registry.add_archive("random", "3.6.0", "linux_amd64", b"archive-bytes")
        client = _client(registry.handle)

        resp = await client.open_download(
            "https://releases.example.com/terraform-provider-random_3.6.0_linux_amd64.zip"
        )
        body = b"".join([chunk async for chunk in resp.aiter_bytes()])
        await resp.aclose()

        assert body == b"archive-bytes"
        assert registry.requests[-1].headers["Accept"] == "*/*"
        await client.close()

    async def test_non_success_status(self, registry):
        client = _client(registry.handle)

        with pytest.raises(UpstreamError) as exc_info:
            await client.open_download("https://releases.example.com/missing.zip")

        assert exc_info.value.status_code == 404
        await client.close()
