"""
Health check endpoints for the terraform mirror.

Provides /health (liveness) and /ready (readiness) endpoints.
"""

from fastapi import APIRouter, Request, Response, status

from tfmirror.logging_config import get_logger

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    """Liveness probe endpoint.

    Returns 200 if the server is running.
    """
    return {"status": "ok"}


@router.get("/ready", status_code=status.HTTP_200_OK)
async def ready(request: Request, response: Response) -> dict[str, str | dict[str, str]]:
    """Readiness probe endpoint.

    Checks that the upstream client and hash cache are initialized.
    """
    state = request.app.state
    checks: dict[str, str] = {}

    checks["upstream"] = "healthy" if getattr(state, "upstream", None) is not None else "unhealthy"
    if not getattr(state, "hash_cache_enabled", False):
        checks["hash_cache"] = "disabled"
    else:
        checks["hash_cache"] = (
            "healthy" if getattr(state, "hash_store", None) is not None else "unhealthy"
        )

    if "unhealthy" in checks.values():
        logger.warning("Readiness check failed", checks=checks)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not ready", "checks": checks}

    return {"status": "ready", "checks": checks}
