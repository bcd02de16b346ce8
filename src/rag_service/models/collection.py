"""Vector collection models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CollectionInfo(BaseModel):
    """Live description of the backing Qdrant collection."""

    name: str
    vector_width: int = Field(..., ge=0)
    distance: str = "cosine"
    point_count: int = Field(default=0, ge=0)
    vectors_count: int = Field(default=0, ge=0)


class CollectionStats(BaseModel):
    """Reporting view of the collection, as returned by the stats endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_points: int = 0
    vectors_count: int = 0
    collection_name: str
    is_ready: bool = False
    vector_dimensions: int = 0


class DiagnosticReport(BaseModel):
    """Result of comparing the embedding width with the collection width."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    embedding_dimensions: int
    collection_exists: bool
    collection_dimensions: Optional[int] = None
    recommendation: str
