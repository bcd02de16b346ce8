"""Logging configuration for the RAG service.

Every record carries the request ID of the HTTP request that produced it.
Pipeline stages (ingest, retrieval, generation) are logged through
`log_stage` so their timings land as structured fields in production.
"""

import json
import logging
import sys
from contextvars import ContextVar, Token
from typing import Any, Dict, Optional

from rag_service.config import get_settings

# Request ID context variable for tracking requests across async operations
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Root logger, configured once
_logger: Optional[logging.Logger] = None

ROOT_LOGGER_NAME = "rag_service"

# LogRecord attributes that are not user fields
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "extra_fields", "request_id"}


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging in production."""

    def __init__(self, service: str = ROOT_LOGGER_NAME, collection: Optional[str] = None):
        super().__init__()
        self.service = service
        self.collection = collection

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if self.collection:
            log_data["collection"] = self.collection

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Fields passed as extra={"extra_fields": {...}} by log_stage/log_request/log_error
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        # Plain extra={...} keys
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class StandardFormatter(logging.Formatter):
    """Standard formatter for development (human-readable)."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        # Records logged outside a request show N/A
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get() or "N/A"
        return super().format(record)


def setup_logging() -> logging.Logger:
    """Set up logging configuration based on environment."""
    global _logger

    if _logger is not None:
        return _logger

    settings = get_settings()

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, settings.log_level))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, settings.log_level))

    if settings.is_production:
        formatter: logging.Formatter = JSONFormatter(
            service=settings.app_name, collection=settings.qdrant.collection_name
        )
    else:
        formatter = StandardFormatter()

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Third-party clients log every HTTP call at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("LiteLLM").setLevel(logging.INFO if settings.debug else logging.WARNING)

    logger.propagate = False

    _logger = logger
    logger.info(
        f"Logging configured: level={settings.log_level}, "
        f"environment={settings.environment.value}, "
        f"format={'JSON' if settings.is_production else 'Standard'}"
    )
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the service's root logger."""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return logging.getLogger(ROOT_LOGGER_NAME)


def set_request_id(request_id: str) -> Token:
    """Bind a request ID to the current context; pass the token to `reset_request_id`."""
    return request_id_var.set(request_id)


def reset_request_id(token: Token) -> None:
    request_id_var.reset(token)


def log_stage(stage: str, duration_ms: float, **fields: Any) -> None:
    """
    Log the completion of one pipeline stage.

    Args:
        stage: Stage name, e.g. "ingest", "retrieval" or "generation"
        duration_ms: Time the stage took
        **fields: Stage-specific fields (chunk counts, tier, generation path)
    """
    logger = get_logger("pipeline")
    extra_fields = {"stage": stage, "duration_ms": round(duration_ms, 2), **fields}
    details = ", ".join(f"{key}={value}" for key, value in fields.items())
    logger.info(
        f"{stage} completed in {duration_ms:.1f}ms" + (f" ({details})" if details else ""),
        extra={"extra_fields": extra_fields},
    )


def log_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log an HTTP request; health checks pass a lower level."""
    logger = get_logger("http")
    extra_fields = {
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms,
        **kwargs,
    }
    logger.log(
        level,
        f"{method} {path} - {status_code} - {duration_ms:.2f}ms",
        extra={"extra_fields": extra_fields},
    )


def log_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    **kwargs: Any,
) -> None:
    """Log an error with context; RAG errors also carry their code and details."""
    logger = get_logger("error")
    extra_fields = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
        **kwargs,
    }
    code = getattr(error, "code", None)
    if code is not None:
        extra_fields["error_code"] = code
        extra_fields["error_details"] = getattr(error, "details", {})
    logger.error(
        f"Error: {type(error).__name__}: {str(error)}",
        exc_info=error,
        extra={"extra_fields": extra_fields},
    )
