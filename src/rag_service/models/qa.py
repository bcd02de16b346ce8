"""Question answering request/response models."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from rag_service.models.collection import CollectionStats
from rag_service.models.document import ChunkDocument


class QAMetadata(BaseModel):
    """Timing and usage information for one answer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    retrieval_time_ms: float = 0.0
    generation_time_ms: float = 0.0
    chunks_used: int = 0


class QAResult(BaseModel):
    """Answer to a question with its supporting chunks."""

    answer: str
    sources: List[ChunkDocument] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    metadata: QAMetadata = Field(default_factory=QAMetadata)


class QueryError(BaseModel):
    """Typed failure returned across the service boundary instead of raising."""

    error: str


class QueryRequest(BaseModel):
    """Body of the query and stream endpoints."""

    question: str = Field(..., description="Natural-language question")

    @field_validator("question")
    @classmethod
    def validate_question(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Valid question is required")
        return v.strip()


class UploadResult(BaseModel):
    """Outcome of uploading and ingesting one document."""

    success: bool
    message: str
    stats: Optional[CollectionStats] = None


class ClearResult(BaseModel):
    """Outcome of clearing the corpus."""

    success: bool
    message: str
