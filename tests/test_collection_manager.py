"""Tests for the collection manager."""

import pytest

from rag_service.services.collection_manager import DEFAULT_VECTOR_DIMENSIONS, CollectionManager
from rag_service.utils.errors import NotInitializedError, VectorStoreError
from tests.conftest import TEST_COLLECTION, FakeEmbeddingService


@pytest.fixture
def manager(state, qdrant, embeddings, settings):
    return CollectionManager(state, qdrant, embeddings, settings)


class TestEnsureReady:
    """Test binding the collection into pipeline state."""

    @pytest.mark.asyncio
    async def test_binds_store_and_retriever(self, manager, state):
        """Test the vector store and retriever are bound after reconciliation."""
        with pytest.raises(NotInitializedError):
            state.require_collection()

        info = await manager.ensure_ready()

        assert info.name == TEST_COLLECTION
        assert info.vector_width == 768
        assert state.collection_ready is True
        assert state.require_collection() is state.vector_store
        assert state.retriever.k == 5

    @pytest.mark.asyncio
    async def test_self_heals_dimension_mismatch(self, state, qdrant, settings):
        """Test a 256-wide collection ends up 768-wide and empty."""
        await qdrant.create_collection(TEST_COLLECTION, 256)
        qdrant.collections[TEST_COLLECTION]["points"]["old"] = ([0.1] * 256, {"pageContent": "stale"})
        manager = CollectionManager(state, qdrant, FakeEmbeddingService(width=768), settings)

        info = await manager.ensure_ready()
        stats = await manager.describe()

        assert info.vector_width == 768
        assert info.point_count == 0
        assert stats.vector_dimensions == 768
        assert stats.total_points == 0


class TestDescribe:
    """Test collection statistics."""

    @pytest.mark.asyncio
    async def test_describe_counts_points(self, manager, qdrant):
        """Test live counts are reported."""
        await manager.ensure_ready()
        qdrant.collections[TEST_COLLECTION]["points"]["p"] = ([0.1] * 768, {"pageContent": "x"})
        stats = await manager.describe()
        assert stats.total_points == 1
        assert stats.vectors_count == 1
        assert stats.collection_name == TEST_COLLECTION

    @pytest.mark.asyncio
    async def test_describe_never_raises(self, manager, qdrant):
        """Test failures report an empty, not-ready collection."""
        qdrant.fail_describe = True
        stats = await manager.describe()
        assert stats.total_points == 0
        assert stats.is_ready is False
        assert stats.vector_dimensions == DEFAULT_VECTOR_DIMENSIONS

    @pytest.mark.asyncio
    async def test_camel_case_serialisation(self, manager):
        """Test stats serialise with camelCase keys."""
        await manager.ensure_ready()
        payload = (await manager.describe()).model_dump(by_alias=True)
        assert set(payload) == {"totalPoints", "vectorsCount", "collectionName", "isReady", "vectorDimensions"}


class TestLifecycle:
    """Test counting, validation and deletion."""

    @pytest.mark.asyncio
    async def test_point_count_raises_on_failure(self, manager):
        """Test point_count propagates failures."""
        with pytest.raises(VectorStoreError):
            await manager.point_count()

    @pytest.mark.asyncio
    async def test_validate(self, manager, qdrant):
        """Test validation reflects liveness of the bound collection."""
        assert await manager.validate() is False
        await manager.ensure_ready()
        assert await manager.validate() is True
        qdrant.fail_queries = True
        assert await manager.validate() is False

    @pytest.mark.asyncio
    async def test_delete(self, manager, qdrant):
        """Test the collection is dropped, and dropping twice is fine."""
        await manager.ensure_ready()
        await manager.delete()
        await manager.delete()
        assert TEST_COLLECTION not in qdrant.collections
