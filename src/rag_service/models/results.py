"""Tagged outcomes for retrieval tiers and generation paths."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal, Union

from rag_service.models.document import ChunkDocument


class RetrievalTier(str, Enum):
    """Retrieval strategies, in the order they are attempted."""

    STRUCTURED = "structured"
    RAW = "raw"
    DIRECT = "direct"


class GenerationPath(str, Enum):
    """How a batch answer was produced."""

    CHAIN = "chain"
    MANUAL = "manual"


@dataclass(frozen=True)
class TierSuccess:
    tier: RetrievalTier
    documents: List[ChunkDocument]
    kind: Literal["success"] = "success"


@dataclass(frozen=True)
class TierFailure:
    tier: RetrievalTier
    error: Exception
    kind: Literal["failure"] = "failure"


TierOutcome = Union[TierSuccess, TierFailure]


@dataclass(frozen=True)
class RetrievalResult:
    """Ordered chunks (most similar first) and the tier that produced them."""

    documents: List[ChunkDocument] = field(default_factory=list)
    tier: RetrievalTier = RetrievalTier.STRUCTURED

    def __len__(self) -> int:
        return len(self.documents)


@dataclass(frozen=True)
class GenerationSuccess:
    path: GenerationPath
    text: str
    kind: Literal["success"] = "success"


@dataclass(frozen=True)
class GenerationFailure:
    path: GenerationPath
    error: Exception
    kind: Literal["failure"] = "failure"


GenerationOutcome = Union[GenerationSuccess, GenerationFailure]
