"""Tests for the document-level vector store."""

import pytest

from rag_service.models.document import ChunkDocument, ChunkMetadata
from rag_service.services.vector_store import QdrantVectorStore
from tests.conftest import TEST_COLLECTION


def _doc(text: str, chunk_id: str, index: int = 0) -> ChunkDocument:
    return ChunkDocument(
        content=text,
        metadata=ChunkMetadata(source="notes.txt", chunk_id=chunk_id, chunk_index=index),
    )


class TestQdrantVectorStore:
    """Test storing and searching chunks."""

    @pytest.mark.asyncio
    async def test_add_documents_uses_chunk_ids(self, qdrant, embeddings):
        """Test each chunk becomes one point keyed by its chunk id."""
        await qdrant.create_collection(TEST_COLLECTION, 768)
        store = QdrantVectorStore(qdrant, embeddings, TEST_COLLECTION)

        stored = await store.add_documents([_doc("alpha", "c-1"), _doc("beta", "c-2", 1)])

        points = qdrant.collections[TEST_COLLECTION]["points"]
        assert stored == 2
        assert set(points) == {"c-1", "c-2"}
        payload = points["c-2"][1]
        assert payload["pageContent"] == "beta"
        assert payload["metadata"]["chunkIndex"] == 1

    @pytest.mark.asyncio
    async def test_add_nothing(self, qdrant, embeddings):
        """Test an empty batch does not touch the store."""
        store = QdrantVectorStore(qdrant, embeddings, TEST_COLLECTION)
        assert await store.add_documents([]) == 0

    @pytest.mark.asyncio
    async def test_search_orders_by_similarity(self, qdrant, embeddings):
        """Test the closest chunk is returned first and payloads round-trip."""
        await qdrant.create_collection(TEST_COLLECTION, 768)
        store = QdrantVectorStore(qdrant, embeddings, TEST_COLLECTION)
        await store.add_documents(
            [
                _doc("Bananas are yellow fruit.", "c-1"),
                _doc("Paris is the capital of France.", "c-2", 1),
            ]
        )

        scored = await store.similarity_search_with_score("capital of France", k=2)
        assert scored[0][0].content == "Paris is the capital of France."
        assert scored[0][1] >= scored[1][1]
        assert scored[0][0].metadata.source == "notes.txt"

        retriever = store.as_retriever(k=1)
        docs = await retriever.invoke("capital of France")
        assert [d.metadata.chunk_id for d in docs] == ["c-2"]

        docs = await retriever.invoke("capital of France", k=2)
        assert len(docs) == 2
