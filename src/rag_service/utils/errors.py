"""Custom exception classes for the RAG service."""

from typing import Any, Dict, List, Optional


class RAGServiceException(Exception):
    """Base exception for all RAG service errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "status_code": self.status_code,
                "details": self.details,
            }
        }


class EmptyInputError(RAGServiceException):
    """Raised when there is no usable text to ingest."""

    def __init__(
        self,
        message: str = "No text content provided",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=422,
            code="EMPTY_INPUT",
            details=details,
        )


class UnsupportedTypeError(RAGServiceException):
    """Raised for document types other than PDF and plain text."""

    def __init__(
        self,
        message: str = "Unsupported file type. Please upload PDF or TXT files.",
        mime_type: Optional[str] = None,
        filename: Optional[str] = None,
    ):
        error_details: Dict[str, Any] = {}
        if mime_type:
            error_details["mime_type"] = mime_type
        if filename:
            error_details["filename"] = filename
        super().__init__(
            message=message,
            status_code=415,
            code="UNSUPPORTED_TYPE",
            details=error_details,
        )


class ChunkingError(RAGServiceException):
    """Raised for invalid chunking configuration."""

    def __init__(
        self,
        message: str = "Text chunking failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=422,
            code="CHUNKING_ERROR",
            details=details,
        )


class EmbeddingError(RAGServiceException):
    """Raised when the embedding model fails."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        model: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if model:
            error_details["model"] = model
        super().__init__(
            message=message,
            status_code=502,
            code="EMBEDDING_ERROR",
            details=error_details,
        )


class GenerationError(RAGServiceException):
    """Raised when the chat-completion model fails."""

    def __init__(
        self,
        message: str = "Answer generation failed",
        model: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if model:
            error_details["model"] = model
        super().__init__(
            message=message,
            status_code=502,
            code="GENERATION_ERROR",
            details=error_details,
        )


class StoreUnavailableError(RAGServiceException):
    """Raised when the vector store cannot be reached at all."""

    def __init__(
        self,
        message: str = "Qdrant server is not accessible or healthy",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=503,
            code="STORE_UNAVAILABLE",
            details=details,
        )


class VectorStoreError(RAGServiceException):
    """Raised when a single vector store operation fails."""

    def __init__(
        self,
        message: str = "Qdrant operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=502,
            code="QDRANT_ERROR",
            details=details,
        )


class DimensionMismatchError(VectorStoreError):
    """Raised when vectors do not match the collection width.

    Recovered by recreating the collection; never surfaced to callers.
    """

    def __init__(
        self,
        message: str = "Vector dimension mismatch",
        expected: Optional[int] = None,
        actual: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if expected is not None:
            error_details["expected"] = expected
        if actual is not None:
            error_details["actual"] = actual
        super().__init__(message=message, details=error_details)
        self.status_code = 409
        self.code = "DIMENSION_MISMATCH"


class RetrievalExhaustedError(RAGServiceException):
    """Raised when every retrieval tier failed."""

    def __init__(
        self,
        message: str = "All retrieval methods failed",
        cause: Optional[BaseException] = None,
        tier_errors: Optional[List[Dict[str, str]]] = None,
    ):
        self.cause = cause
        details: Dict[str, Any] = {"tiers": tier_errors or []}
        if cause is not None:
            details["last_error"] = str(cause)
            message = f"{message}: {cause}"
        super().__init__(
            message=message,
            status_code=502,
            code="RETRIEVAL_EXHAUSTED",
            details=details,
        )


class EmptyCorpusError(RAGServiceException):
    """Raised when the collection holds no points; an expected condition."""

    def __init__(
        self,
        message: str = "No documents found in the collection. Please upload documents first.",
        collection: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            status_code=404,
            code="EMPTY_CORPUS",
            details={"collection": collection} if collection else None,
        )


class NotInitializedError(RAGServiceException):
    """Raised when the pipeline is used before a successful initialize."""

    def __init__(
        self,
        message: str = "RAG pipeline is not initialized. Please upload a document first.",
    ):
        super().__init__(
            message=message,
            status_code=503,
            code="NOT_INITIALIZED",
        )


class IngestionError(RAGServiceException):
    """Raised when documents could not be stored after the repair attempt."""

    def __init__(
        self,
        message: str = "Failed to process text",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=500,
            code="INGESTION_ERROR",
            details=details,
        )
