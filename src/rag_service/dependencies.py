"""FastAPI dependencies for the RAG service."""

from typing import Optional

from fastapi import HTTPException, Request, status

from rag_service.services.rag_service import RagService
from rag_service.utils.logging import get_logger

logger = get_logger("dependencies")


async def get_rag_service(request: Request) -> RagService:
    """
    Get the shared RagService from app state.

    The service is created once during startup and stored in app.state.rag_service.

    Raises:
        HTTPException: If the service was not created.
    """
    service: Optional[RagService] = getattr(request.app.state, "rag_service", None)
    if service is None:
        logger.error("RAG service not available in app state")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="RAG service is not available",
        )
    return service
