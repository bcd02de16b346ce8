"""Document-level helpers over the Qdrant collection."""

from __future__ import annotations

from typing import List, Optional, Tuple

from rag_service.models.document import ChunkDocument
from rag_service.services.embedding_service import EmbeddingService
from rag_service.services.qdrant_service import QdrantService


class QdrantVectorStore:
    """Stores and searches ChunkDocuments, embedding text on the way in and out."""

    def __init__(
        self,
        qdrant: QdrantService,
        embeddings: EmbeddingService,
        collection_name: str,
    ) -> None:
        self.qdrant = qdrant
        self.embeddings = embeddings
        self.collection_name = collection_name

    async def add_documents(self, documents: List[ChunkDocument]) -> int:
        """Embed and upsert documents in one batch; point ids are the chunk ids."""
        if not documents:
            return 0
        vectors = await self.embeddings.embed_documents([d.content for d in documents])
        return await self.qdrant.upsert_points(
            self.collection_name,
            ids=[d.metadata.chunk_id for d in documents],
            vectors=vectors,
            payloads=[d.to_payload() for d in documents],
        )

    async def similarity_search_with_score(
        self, query: str, k: int
    ) -> List[Tuple[ChunkDocument, float]]:
        vector = await self.embeddings.embed_query(query)
        points = await self.qdrant.query_points(self.collection_name, vector, limit=k)
        return [(ChunkDocument.from_payload(p.payload), p.score) for p in points]

    async def similarity_search(self, query: str, k: int) -> List[ChunkDocument]:
        """Most similar documents first."""
        return [doc for doc, _ in await self.similarity_search_with_score(query, k)]

    def as_retriever(self, k: int) -> "VectorStoreRetriever":
        return VectorStoreRetriever(self, k)


class VectorStoreRetriever:
    """Retriever handle with a fixed result size, bound once the collection is ready."""

    def __init__(self, vector_store: QdrantVectorStore, k: int) -> None:
        self.vector_store = vector_store
        self.k = k

    async def invoke(self, query: str, k: Optional[int] = None) -> List[ChunkDocument]:
        """Most similar documents first; `k` overrides the bound result size."""
        limit = k if k is not None else self.k
        scored = await self.vector_store.similarity_search_with_score(query, limit)
        return [doc for doc, _ in scored]
