"""Health check endpoints."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from rag_service.config import get_settings
from rag_service.dependencies import get_rag_service
from rag_service.services.rag_service import RagService
from rag_service.utils.errors import StoreUnavailableError
from rag_service.utils.logging import get_logger

logger = get_logger("health")

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """
    Health check endpoint.

    Does not check external dependencies; healthy whenever the process is running.
    """
    settings = get_settings()
    logger.debug("Health check requested")
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "environment": settings.environment.value,
    }


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check(rag: RagService = Depends(get_rag_service)):
    """
    Readiness check endpoint.

    Checks:
    - Qdrant is reachable
    - an embedding provider is configured

    Returns 503 if any check fails.
    """
    settings = get_settings()
    checks = {
        "qdrant": False,
        "embeddings": rag.settings.embedding.is_configured,
    }

    try:
        await rag.qdrant.health_check()
        checks["qdrant"] = True
    except StoreUnavailableError as e:
        logger.warning(f"Qdrant connection check failed: {e.details.get('error')}")

    body = {
        "status": "ready" if all(checks.values()) else "not_ready",
        "app_name": settings.app_name,
        "environment": settings.environment.value,
        "checks": checks,
    }
    if not all(checks.values()):
        logger.warning(f"Readiness check failed: {checks}")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body
