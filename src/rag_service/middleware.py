"""HTTP middleware: request IDs, request timing and unhandled-error logging."""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from rag_service.utils.logging import (
    get_logger,
    log_error,
    log_request,
    reset_request_id,
    set_request_id,
)

logger = get_logger("middleware")

REQUEST_ID_HEADER = "X-Request-ID"
PROCESS_TIME_HEADER = "X-Process-Time"

# Polled by orchestrators; logged at DEBUG
HEALTH_CHECK_PATHS = frozenset({"/health", "/ready", "/api/v1/health", "/api/v1/ready"})


def _client_ip(request: Request):
    return request.client.host if request.client else None


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag every request, and every log line it produces, with a request ID."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Honour an upstream ID so traces line up across proxies
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class TimingMiddleware(BaseHTTPMiddleware):
    """Log request duration and expose it as a response header."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        streaming = response.headers.get("content-type", "").startswith("text/event-stream")
        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            level=logging.DEBUG if request.url.path in HEALTH_CHECK_PATHS else logging.INFO,
            client_ip=_client_ip(request),
            # SSE responses are timed to the first byte only
            streaming=streaming,
        )
        response.headers[PROCESS_TIME_HEADER] = f"{duration_ms:.2f}ms"
        return response


class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Log exceptions that escaped the exception handlers, then re-raise."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            log_error(
                e,
                context={
                    "method": request.method,
                    "path": request.url.path,
                    "client_ip": _client_ip(request),
                },
            )
            raise


def setup_middleware(app: ASGIApp) -> None:
    """Set up all middleware for the FastAPI application.

    Middleware executes in reverse order of registration:
    1. ErrorLogging (outermost) - logs anything that escapes
    2. RequestID - binds the ID before anything below it logs
    3. Timing (innermost) - its request log line carries the ID
    """
    app.add_middleware(TimingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(ErrorLoggingMiddleware)

    logger.info("Middleware configured: ErrorLogging, RequestID, Timing")
