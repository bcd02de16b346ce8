"""Question answering endpoints, batch and Server-Sent Events."""

import json
from contextlib import aclosing
from typing import AsyncIterator

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from rag_service.dependencies import get_rag_service
from rag_service.models.qa import QAResult, QueryError, QueryRequest
from rag_service.services.rag_service import RagService
from rag_service.utils.errors import RAGServiceException
from rag_service.utils.logging import get_logger

logger = get_logger("query")

router = APIRouter(tags=["query"])


def sse_event(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def event_stream(fragments: AsyncIterator[str]) -> AsyncIterator[str]:
    """Wrap answer fragments as SSE chunk events followed by one terminal event."""
    async with aclosing(fragments):
        try:
            async for fragment in fragments:
                yield sse_event({"chunk": fragment})
        except RAGServiceException as e:
            logger.error(f"Stream error: {e.message}")
            yield sse_event({"error": e.message})
            return
        except Exception as e:
            logger.error(f"Stream error: {e}", exc_info=True)
            yield sse_event({"error": str(e)})
            return
    yield sse_event({"done": True})


@router.post(
    "/query",
    response_model=QAResult,
    status_code=status.HTTP_200_OK,
    responses={500: {"model": QueryError}},
)
async def query(request: QueryRequest, rag: RagService = Depends(get_rag_service)):
    """Answer a question from the uploaded documents."""
    logger.info(f"Processing query: {request.question}")
    result = await rag.query(request.question)
    if isinstance(result, QueryError):
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=result.model_dump())
    return result


@router.post("/stream", status_code=status.HTTP_200_OK)
async def stream(request: QueryRequest, rag: RagService = Depends(get_rag_service)):
    """
    Stream an answer as Server-Sent Events.

    Events are `{"chunk": ...}` per fragment, then `{"done": true}`, or
    `{"error": ...}` if generation fails mid-stream.
    """
    logger.info(f"Processing stream query: {request.question}")
    result = await rag.stream_query(request.question)
    if isinstance(result, QueryError):
        return PlainTextResponse(result.error, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return StreamingResponse(
        event_stream(result),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
