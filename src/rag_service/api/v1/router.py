"""API v1 router aggregation.

All v1 endpoints are prefixed with `/api/v1`.
"""

from fastapi import APIRouter

from rag_service.api.v1 import documents, health, query

router = APIRouter(
    prefix="/api/v1",
    tags=["v1"],
    responses={
        404: {"description": "Not found"},
        422: {"description": "Validation error"},
        500: {"description": "Internal server error"},
    },
)

router.include_router(health.router)
router.include_router(documents.router)
router.include_router(query.router)


@router.get(
    "/",
    summary="API Information",
    description="Get API version and status information",
    tags=["v1"],
)
async def api_info():
    """Get API v1 information."""
    return {
        "version": "v1",
        "status": "active",
        "service": "rag-service",
        "endpoints": {
            "health": "/api/v1/health",
            "ready": "/api/v1/ready",
            "upload": "/api/v1/upload",
            "query": "/api/v1/query",
            "stream": "/api/v1/stream",
            "stats": "/api/v1/stats",
            "clear": "/api/v1/clear",
            "diagnose": "/api/v1/diagnose",
        },
    }
