"""Client for the origin provider registry API.

Stateless transport adapter over one shared httpx.AsyncClient. Whether
traffic goes direct or through a SOCKS5 proxy is decided once, by the
transport passed in at construction.
"""

import httpx
from pydantic import ValidationError

from tfmirror.version import __version__
from tfmirror.errors import TransportError, UpstreamError
from tfmirror.logging_config import get_logger
from tfmirror.models import UpstreamDownload, UpstreamVersionList

logger = get_logger(__name__)

USER_AGENT = f"terraform-mirror/{__version__}"


def build_transport(socks5_addr: str = "") -> httpx.AsyncBaseTransport:
    """Create the transport for origin traffic.

    An empty address dials the origin directly; otherwise every connection
    is tunnelled through ``socks5://{socks5_addr}``.
    """
    if not socks5_addr:
        return httpx.AsyncHTTPTransport()

    proxy_url = socks5_addr if "://" in socks5_addr else f"socks5://{socks5_addr}"
    logger.info("SOCKS5 proxy enabled", addr=socks5_addr)
    return httpx.AsyncHTTPTransport(proxy=httpx.Proxy(proxy_url))


class UpstreamClient:
    """Fetches version listings, download locations and archives from the origin."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        download_timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._download_timeout = download_timeout
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            transport=transport or build_transport(),
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def fetch_versions(self, namespace: str, name: str) -> UpstreamVersionList:
        """GET /v1/providers/{namespace}/{name}/versions."""
        path = f"/v1/providers/{namespace}/{name}/versions"
        logger.debug("Fetching provider versions", path=path)

        resp = await self._get_json(path)
        try:
            return UpstreamVersionList.model_validate_json(resp.content)
        except ValidationError as e:
            raise UpstreamError(resp.status_code, f"invalid versions response: {e}") from e

    async def resolve_download(
        self, namespace: str, name: str, version: str, os_: str, arch: str
    ) -> str:
        """Return the origin's (usually short-lived) download URL for one archive."""
        path = f"/v1/providers/{namespace}/{name}/{version}/download/{os_}/{arch}"
        logger.debug("Fetching download URL", path=path)

        resp = await self._get_json(path)
        try:
            info = UpstreamDownload.model_validate_json(resp.content)
        except ValidationError as e:
            raise UpstreamError(resp.status_code, f"invalid download response: {e}") from e
        return info.download_url

    async def open_download(self, url: str) -> httpx.Response:
        """Start a streaming GET of an archive.

        The caller owns the returned response and must ``aclose()`` it.

        Raises:
            UpstreamError: On a non-success status (the response is closed).
            TransportError: On connection failure or timeout.
        """
        try:
            request = self._client.build_request(
                "GET",
                url,
                headers={"Accept": "*/*"},
                timeout=self._download_timeout,
            )
            resp = await self._client.send(request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"Download request failed: {e}") from e

        if not resp.is_success:
            await resp.aclose()
            raise UpstreamError(resp.status_code, "download failed")
        return resp

    async def close(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str) -> httpx.Response:
        try:
            resp = await self._client.get(path)
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {path} failed: {e}") from e

        if not resp.is_success:
            logger.warning("Upstream request failed", path=path, status=resp.status_code)
            raise UpstreamError(resp.status_code, resp.text[:200] or resp.reason_phrase)
        return resp
