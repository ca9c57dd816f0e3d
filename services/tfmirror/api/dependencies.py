"""
FastAPI dependencies for the terraform mirror.

Components are built once per application by create_app() and kept on
``app.state``; these dependencies hand them to route handlers.
"""

from fastapi import HTTPException, Request, status

from tfmirror.services.download_proxy import DownloadProxy
from tfmirror.services.provider_mirror_service import ProviderMirrorService


def get_mirror_service(request: Request) -> ProviderMirrorService:
    service: ProviderMirrorService | None = getattr(request.app.state, "mirror_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Mirror service not initialized",
        )
    return service


def get_download_proxy(request: Request) -> DownloadProxy:
    proxy: DownloadProxy | None = getattr(request.app.state, "download_proxy", None)
    if proxy is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Download proxy not initialized",
        )
    return proxy
