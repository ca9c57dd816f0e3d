"""Download proxy for provider archives.

Streams an archive from the origin to the client. The first time a
provider/version/platform is requested its archive is spooled to a temporary
file, hashed (h1) and recorded in the hash store before being served, so the
next {version}.json for that version can advertise the hash. Once a hash is
known, archives are relayed straight through.

Hash caching is best-effort: hashing or storage failures are logged and the
client still receives the archive.

State flow of a ProviderDownload:

    IDLE -> RESOLVING_LOCATION -> FETCHING_ORIGIN
         -> STREAMING_DIRECT | STREAMING_AND_HASHING -> DONE

with FAILED reachable from every state.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import StrEnum
from pathlib import Path
from typing import Any

import aiofiles.tempfile
import httpx

from tfmirror.errors import (
    ClientDisconnected,
    HashComputationError,
    StorageError,
    TransportError,
)
from tfmirror.logging_config import get_logger
from tfmirror.models import PackageKey
from tfmirror.services.archive_names import ArchiveName, decode_archive_name
from tfmirror.services.content_hash import compute_h1_async
from tfmirror.services.provider_mirror_service import ProviderMirrorService
from tfmirror.services.upstream_client import UpstreamClient
from tfmirror.storage.protocol import HashStore

logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024

DisconnectCheck = Callable[[], Awaitable[bool]]


class DownloadState(StrEnum):
    IDLE = "idle"
    RESOLVING_LOCATION = "resolving_location"
    FETCHING_ORIGIN = "fetching_origin"
    STREAMING_DIRECT = "streaming_direct"
    STREAMING_AND_HASHING = "streaming_and_hashing"
    DONE = "done"
    FAILED = "failed"


_TERMINAL = (DownloadState.DONE, DownloadState.FAILED)


class ProviderDownload:
    """One archive transfer from the origin to a client.

    Created by DownloadProxy.open(). The owner must exhaust ``iter_bytes()``
    or call ``aclose()``; both release the origin connection and any spool
    file.
    """

    def __init__(self, namespace: str, filename: str, deadline: float) -> None:
        self.namespace = namespace
        self.filename = filename
        self.archive: ArchiveName | None = None
        self.key: PackageKey | None = None
        self.state = DownloadState.IDLE
        self.history: list[DownloadState] = [DownloadState.IDLE]
        self.content_length: int | None = None
        self.h1: str | None = None

        self._deadline = deadline
        self._upstream_response: httpx.Response | None = None
        self._spool: Any = None
        self._closed = False

    def transition(self, state: DownloadState) -> None:
        if self.state in _TERMINAL:
            return
        logger.debug(
            "Download state change",
            file=self.filename,
            previous=self.state.value,
            state=state.value,
        )
        self.state = state
        self.history.append(state)

    def bind(self, archive: ArchiveName) -> PackageKey:
        self.archive = archive
        self.key = PackageKey.for_platform(
            self.namespace, archive.name, archive.version, archive.os, archive.arch
        )
        return self.key

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """Yield the archive body to the client."""
        try:
            if self.state == DownloadState.STREAMING_DIRECT:
                if self._upstream_response is None:
                    raise RuntimeError("No upstream response to stream")
                async for chunk in self.bounded(self._upstream_response.aiter_bytes(CHUNK_SIZE)):
                    yield chunk
            elif self.state == DownloadState.STREAMING_AND_HASHING:
                if self._spool is None:
                    raise RuntimeError("No spooled archive to stream")
                while chunk := await self._spool.read(CHUNK_SIZE):
                    yield chunk
            else:
                raise RuntimeError(f"Download is not streamable in state {self.state}")
            self.transition(DownloadState.DONE)
        except BaseException as e:
            self.transition(DownloadState.FAILED)
            if not isinstance(e, GeneratorExit | asyncio.CancelledError):
                logger.error("Archive stream aborted", file=self.filename, error=str(e))
            raise
        finally:
            await self.aclose()

    async def bounded(self, chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
        """Relay origin chunks, enforcing the overall download deadline."""
        iterator = aiter(chunks)
        while True:
            try:
                async with asyncio.timeout_at(self._deadline):
                    chunk = await anext(iterator)
            except StopAsyncIteration:
                return
            except TimeoutError as e:
                raise TransportError("Download exceeded time limit") from e
            except httpx.HTTPError as e:
                raise TransportError(f"Download interrupted: {e}") from e
            yield chunk

    def attach_upstream(self, response: httpx.Response) -> None:
        self._upstream_response = response

    def attach_spool(self, spool: Any) -> None:
        self._spool = spool

    async def release_upstream(self) -> None:
        if self._upstream_response is not None:
            response, self._upstream_response = self._upstream_response, None
            await response.aclose()

    async def aclose(self) -> None:
        """Release the origin connection and spool file. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        if self.state not in _TERMINAL:
            self.transition(DownloadState.FAILED)
        await self.release_upstream()
        if self._spool is not None:
            spool, self._spool = self._spool, None
            await spool.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def deadline(self) -> float:
        """Event-loop time by which the whole transfer must finish."""
        return self._deadline


class DownloadProxy:
    """Opens archive downloads, hashing and caching them on first sight."""

    def __init__(
        self,
        mirror: ProviderMirrorService,
        upstream: UpstreamClient,
        hash_store: HashStore | None,
        spool_dir: str | None = None,
        download_timeout: float = 300.0,
    ) -> None:
        self._mirror = mirror
        self._upstream = upstream
        self._hash_store = hash_store
        self._spool_dir = spool_dir or None
        self._download_timeout = download_timeout

        if self._spool_dir is not None:
            Path(self._spool_dir).mkdir(parents=True, exist_ok=True)

    async def open(
        self,
        namespace: str,
        filename: str,
        is_disconnected: DisconnectCheck | None = None,
    ) -> ProviderDownload:
        """Resolve and start fetching an archive, ready for streaming.

        On return the download is in STREAMING_DIRECT or
        STREAMING_AND_HASHING; in the latter case the archive is already
        spooled and ``content_length`` is exact.

        ``is_disconnected`` is polled after resolution and between spooled
        chunks so that a client that goes away stops the origin fetch.

        Raises:
            MalformedInput: If ``filename`` is not a provider archive name.
            UpstreamError: If the origin rejects the resolution or download.
            TransportError: If the origin cannot be reached in time.
            ClientDisconnected: If ``is_disconnected`` reports the client gone.
        """
        deadline = asyncio.get_running_loop().time() + self._download_timeout
        download = ProviderDownload(namespace, filename, deadline)
        try:
            await self._start(download, is_disconnected)
        except BaseException:
            download.transition(DownloadState.FAILED)
            await download.aclose()
            raise
        return download

    async def _start(
        self, download: ProviderDownload, is_disconnected: DisconnectCheck | None
    ) -> None:
        download.transition(DownloadState.RESOLVING_LOCATION)
        archive = decode_archive_name(download.filename)
        key = download.bind(archive)

        cached = await self._cached_hash(key)
        url = await self._mirror.resolve_download_location(
            key.namespace, archive.name, archive.version, archive.os, archive.arch
        )
        logger.debug("Proxying download", url=url, has_hash=cached is not None)
        await _check_client(download, is_disconnected)

        download.transition(DownloadState.FETCHING_ORIGIN)
        try:
            async with asyncio.timeout_at(download.deadline):
                response = await self._upstream.open_download(url)
        except TimeoutError as e:
            raise TransportError("Download exceeded time limit") from e
        download.attach_upstream(response)

        if cached is not None or self._hash_store is None:
            download.h1 = cached
            download.content_length = _forwardable_length(response)
            download.transition(DownloadState.STREAMING_DIRECT)
            return

        download.transition(DownloadState.STREAMING_AND_HASHING)
        await self._spool_and_hash(download, response, key, self._hash_store, is_disconnected)

    async def _cached_hash(self, key: PackageKey) -> str | None:
        if self._hash_store is None:
            return None
        try:
            return await self._hash_store.get(key)
        except StorageError as e:
            logger.warning("Hash lookup failed", provider=key.provider, error=str(e))
            return None

    async def _spool_and_hash(
        self,
        download: ProviderDownload,
        response: httpx.Response,
        key: PackageKey,
        hash_store: HashStore,
        is_disconnected: DisconnectCheck | None,
    ) -> None:
        spool = await aiofiles.tempfile.NamedTemporaryFile(
            "w+b", prefix="provider-", suffix=".zip", dir=self._spool_dir
        )
        download.attach_spool(spool)

        written = 0
        async for chunk in download.bounded(response.aiter_bytes(CHUNK_SIZE)):
            await _check_client(download, is_disconnected)
            await spool.write(chunk)
            written += len(chunk)
        await spool.flush()
        await download.release_upstream()

        try:
            download.h1 = await compute_h1_async(spool.name)
        except HashComputationError as e:
            logger.error(
                "Failed to calculate h1",
                provider=key.provider,
                version=key.version,
                platform=key.platform,
                error=str(e),
            )

        if download.h1 is not None:
            try:
                await hash_store.set(key, download.h1)
            except StorageError as e:
                logger.error("Failed to cache h1", provider=key.provider, error=str(e))
            else:
                logger.info(
                    "Cached h1 hash",
                    provider=key.provider,
                    version=key.version,
                    platform=key.platform,
                    h1=download.h1,
                )

        await spool.seek(0)
        download.content_length = written


async def _check_client(
    download: ProviderDownload, is_disconnected: DisconnectCheck | None
) -> None:
    if is_disconnected is not None and await is_disconnected():
        raise ClientDisconnected(f"Client went away while fetching {download.filename}")


def _forwardable_length(response: httpx.Response) -> int | None:
    """Content-Length of the origin body as relayed, if it is known."""
    if "content-encoding" in response.headers:
        return None
    value = response.headers.get("content-length")
    if value is None or not value.isdigit():
        return None
    return int(value)
