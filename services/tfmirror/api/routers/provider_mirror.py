"""Provider network mirror protocol endpoints.

Implements the Terraform provider network mirror protocol on top of the
origin registry API, so that `terraform init` can use this service as a
provider mirror.

Endpoints:
    GET  /v1/providers/{hostname}/{namespace}/{type}/index.json       — version list
    GET  /v1/providers/{hostname}/{namespace}/{type}/{version}.json   — platform archives
    GET  /v1/providers/{hostname}/{namespace}/{type}/{archive}.zip    — archive download

The hostname segment is accepted for protocol compatibility; all requests
go to the configured origin.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from tfmirror.api.dependencies import get_download_proxy, get_mirror_service
from tfmirror.errors import (
    ClientDisconnected,
    MalformedInput,
    TransportError,
    UpstreamError,
    VersionNotFound,
)
from tfmirror.logging_config import get_logger
from tfmirror.services.download_proxy import DownloadProxy
from tfmirror.services.provider_mirror_service import ProviderMirrorService

router = APIRouter(tags=["provider-mirror"])
logger = get_logger(__name__)

# Non-standard status recorded when the client leaves before a response is sent
CLIENT_CLOSED_REQUEST = 499


def _gateway_error(e: UpstreamError | TransportError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.get("/v1/providers/{hostname}/{namespace}/{type}/index.json")
async def provider_versions_mirror(
    hostname: str,
    namespace: str,
    type: str,
    mirror: ProviderMirrorService = Depends(get_mirror_service),
) -> JSONResponse:
    """List versions for a provider (network mirror protocol).

    Returns the index.json format expected by terraform's network mirror.
    """
    logger.info("Fetching versions", provider=f"{namespace}/{type}", hostname=hostname)

    try:
        index = await mirror.list_versions(namespace, type)
    except (UpstreamError, TransportError) as e:
        logger.error("Failed to fetch versions", provider=f"{namespace}/{type}", error=str(e))
        raise _gateway_error(e) from e

    return JSONResponse(content=index.model_dump())


@router.get("/v1/providers/{hostname}/{namespace}/{type}/{version}.json")
async def provider_platforms_mirror(
    hostname: str,
    namespace: str,
    type: str,
    version: str,
    mirror: ProviderMirrorService = Depends(get_mirror_service),
) -> JSONResponse:
    """Get platform archives for a provider version (network mirror protocol).

    Returns the {version}.json format with archive URLs and, for platforms
    that have been downloaded through this mirror before, their h1 hashes.
    """
    logger.info(
        "Fetching version",
        provider=f"{namespace}/{type}",
        version=version,
        hostname=hostname,
    )

    try:
        document = await mirror.get_version(namespace, type, version)
    except VersionNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except (UpstreamError, TransportError) as e:
        logger.error(
            "Failed to fetch version",
            provider=f"{namespace}/{type}",
            version=version,
            error=str(e),
        )
        raise _gateway_error(e) from e

    return JSONResponse(content=document.to_document())


@router.get("/v1/providers/{hostname}/{namespace}/{type}/{archive}.zip")
async def provider_archive_download(
    hostname: str,
    namespace: str,
    type: str,
    archive: str,
    request: Request,
    proxy: DownloadProxy = Depends(get_download_proxy),
) -> StreamingResponse:
    """Proxy a provider archive from the origin.

    The first download of an archive also computes and caches its h1 hash.
    """
    filename = f"{archive}.zip"
    logger.info("Downloading provider", provider=f"{namespace}/{type}", file=filename)

    try:
        download = await proxy.open(namespace, filename, is_disconnected=request.is_disconnected)
    except MalformedInput as e:
        logger.warning("Failed to parse filename", file=filename, error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except ClientDisconnected as e:
        logger.info("Client disconnected during download", file=filename)
        raise HTTPException(status_code=CLIENT_CLOSED_REQUEST, detail=str(e)) from e
    except (UpstreamError, TransportError) as e:
        logger.error("Failed to download", file=filename, error=str(e))
        raise _gateway_error(e) from e

    headers: dict[str, str] = {}
    if download.content_length is not None:
        headers["Content-Length"] = str(download.content_length)

    return StreamingResponse(
        download.iter_bytes(),
        media_type="application/zip",
        headers=headers,
        background=BackgroundTask(download.aclose),
    )
