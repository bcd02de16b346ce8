"""Process-wide pipeline state, owned by the RAG service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from rag_service.utils.errors import NotInitializedError

if TYPE_CHECKING:
    from rag_service.services.chain import RetrievalChain
    from rag_service.services.vector_store import QdrantVectorStore, VectorStoreRetriever


@dataclass
class PipelineState:
    """
    Lifecycle state for the single corpus.

    Unset at process start, populated by initialize, fully cleared by clear.
    One instance per service; components receive it explicitly.
    """

    collection_name: str
    initialized: bool = False
    collection_ready: bool = False
    cached_vector_width: Optional[int] = None
    generation_chain_ready: bool = False
    vector_store: Optional["QdrantVectorStore"] = None
    retriever: Optional["VectorStoreRetriever"] = None
    chain: Optional["RetrievalChain"] = None

    @property
    def is_ready(self) -> bool:
        """Initialized with the collection and the chain both bound."""
        return self.initialized and self.collection_ready and self.generation_chain_ready

    def require_collection(self) -> "QdrantVectorStore":
        """Return the bound vector store or raise NotInitializedError."""
        if not self.collection_ready or self.vector_store is None:
            raise NotInitializedError()
        return self.vector_store

    def unbind_collection(self) -> None:
        """Forget the collection binding and the probed width (before a repair)."""
        self.collection_ready = False
        self.cached_vector_width = None
        self.vector_store = None
        self.retriever = None
        self.unbind_chain()

    def unbind_chain(self) -> None:
        self.chain = None
        self.generation_chain_ready = False

    def reset(self) -> None:
        """Return to the process-start state."""
        self.unbind_collection()
        self.initialized = False
