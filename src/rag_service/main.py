"""FastAPI application entry point.

Creates the application with:
- Middleware (RequestID, Timing, ErrorLogging)
- Exception handlers (RAGServiceException, HTTPException, ValidationError, general)
- API routers (v1)
- Root-level health check endpoints (/health, /ready)
- The shared RagService, created in the lifespan and stored on app.state
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from rag_service import __version__
from rag_service.api.v1 import health
from rag_service.api.v1.router import router as v1_router
from rag_service.config import get_settings
from rag_service.dependencies import get_rag_service
from rag_service.middleware import setup_middleware
from rag_service.services.rag_service import RagService
from rag_service.utils.errors import RAGServiceException
from rag_service.utils.logging import get_logger, log_error, setup_logging

setup_logging()
logger = get_logger("main")

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared RAG service; the collection is reconciled lazily on first use."""
    logger.info("Starting RAG service...")
    app.state.rag_service = RagService(settings)
    logger.info(
        f"RAG service ready: collection={settings.qdrant.collection_name}, "
        f"qdrant={settings.qdrant.url}"
    )
    yield
    logger.info("RAG service shut down")


app = FastAPI(
    title="RAG Service",
    description="Retrieval-augmented question answering over uploaded documents.",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    debug=settings.debug,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "health", "description": "Health check and readiness endpoints"},
        {"name": "documents", "description": "Upload, statistics and corpus management"},
        {"name": "query", "description": "Question answering"},
    ],
)

setup_middleware(app)
app.include_router(v1_router)


# Also available at /api/v1/health and /api/v1/ready
@app.get("/health", tags=["health"], include_in_schema=False)
async def root_health_check():
    """Root-level health check endpoint."""
    return await health.health_check()


@app.get("/ready", tags=["health"], include_in_schema=False)
async def root_readiness_check(rag: RagService = Depends(get_rag_service)):
    """Root-level readiness check endpoint."""
    return await health.readiness_check(rag)


@app.exception_handler(RAGServiceException)
async def rag_exception_handler(request: Request, exc: RAGServiceException) -> JSONResponse:
    """Handle RAG service exceptions."""
    log_error(
        exc,
        context={
            "method": request.method,
            "path": request.url.path,
            "status_code": exc.status_code,
            "code": exc.code,
        },
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions (400, 404, etc.)."""
    if exc.status_code == 404:
        logger.warning(f"404 Not Found: {request.method} {request.url.path}")
    else:
        log_error(
            exc,
            context={
                "method": request.method,
                "path": request.url.path,
                "status_code": exc.status_code,
            },
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.detail,
                "code": "HTTP_ERROR",
                "status_code": exc.status_code,
                "details": {},
            }
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error.get("loc", [])),
            "message": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]

    logger.warning(
        f"Validation error: {request.method} {request.url.path}",
        extra={"validation_errors": errors},
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "message": "Validation failed",
                "code": "VALIDATION_ERROR",
                "status_code": 422,
                "details": {"validation_errors": errors},
            }
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    log_error(
        exc,
        context={
            "method": request.method,
            "path": request.url.path,
            "unhandled": True,
        },
    )

    message = "An internal server error occurred" if settings.is_production else str(exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "message": message,
                "code": "INTERNAL_SERVER_ERROR",
                "status_code": 500,
                "details": {} if settings.is_production else {"exception_type": type(exc).__name__},
            }
        },
    )


def run() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "rag_service.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
