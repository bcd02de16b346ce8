"""Document and chunk models."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ChunkMetadata(BaseModel):
    """Metadata attached to every stored chunk.

    Caller-supplied keys (the document's base metadata) are kept as extra
    fields. Serialised with camelCase keys in the Qdrant payload.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    source: str = "uploaded_text"
    chunk_index: int = 0
    chunk_id: str = ""
    timestamp: Optional[str] = None
    type: Optional[str] = None
    pages: Optional[int] = None
    title: Optional[str] = None


class ChunkDocument(BaseModel):
    """One chunk of a source document; maps to exactly one vector point."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    content: str = Field(..., alias="pageContent", description="Chunk text")
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)

    def to_payload(self) -> Dict[str, Any]:
        """Qdrant payload for this chunk."""
        return {
            "pageContent": self.content,
            "metadata": self.metadata.model_dump(by_alias=True, exclude_none=True),
        }

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> "ChunkDocument":
        """Rebuild a chunk from a raw point payload, tolerating missing fields."""
        payload = payload or {}
        content = payload.get("pageContent")
        metadata = payload.get("metadata")
        return cls(
            content=content if isinstance(content, str) else "",
            metadata=ChunkMetadata.model_validate(metadata if isinstance(metadata, dict) else {}),
        )


class ParsedDocument(BaseModel):
    """Text extracted from an uploaded file plus its base metadata."""

    text: str = Field(..., description="Extracted text content")
    metadata: Dict[str, Any] = Field(
        default_factory=dict, description="Base metadata (source, type, pages, title)"
    )
    file_type: str = Field(..., description="Detected file type (pdf or text)")
