"""Tests for embedding width detection and collection reconciliation."""

import pytest

from rag_service.services.dimension_reconciler import PROBE_TEXT, DimensionReconciler
from rag_service.utils.errors import EmbeddingError, StoreUnavailableError
from tests.conftest import TEST_COLLECTION


@pytest.fixture
def reconciler(state, qdrant, embeddings, settings):
    return DimensionReconciler(state, qdrant, embeddings, settings)


class TestDetectWidth:
    """Test the embedding probe."""

    @pytest.mark.asyncio
    async def test_width_is_probed_once(self, reconciler, embeddings, state):
        """Test the probe runs once and the width is cached."""
        assert await reconciler.detect_width() == 768
        assert await reconciler.detect_width() == 768
        assert embeddings.query_calls == [PROBE_TEXT]
        assert state.cached_vector_width == 768

    @pytest.mark.asyncio
    async def test_probe_failure(self, reconciler, embeddings, state):
        """Test a failing probe raises EmbeddingError and caches nothing."""
        embeddings.fail = True
        with pytest.raises(EmbeddingError):
            await reconciler.detect_width()
        assert state.cached_vector_width is None


class TestReconcile:
    """Test the collection is brought to the embedding width."""

    @pytest.mark.asyncio
    async def test_creates_missing_collection(self, reconciler, qdrant):
        """Test an absent collection is created with the probed width."""
        assert await reconciler.reconcile() == 768
        assert qdrant.created == [(TEST_COLLECTION, 768)]
        assert qdrant.deleted == []

    @pytest.mark.asyncio
    async def test_idempotent(self, reconciler, qdrant):
        """Test a consistent collection is left alone."""
        await reconciler.reconcile()
        await reconciler.reconcile()
        assert qdrant.created == [(TEST_COLLECTION, 768)]
        assert qdrant.deleted == []

    @pytest.mark.asyncio
    async def test_recreates_on_width_mismatch(self, reconciler, qdrant):
        """Test a 256-wide collection is replaced by a 768-wide one."""
        await qdrant.create_collection(TEST_COLLECTION, 256)
        qdrant.collections[TEST_COLLECTION]["points"]["old"] = ([0.1] * 256, {"pageContent": "stale"})

        assert await reconciler.reconcile() == 768

        assert qdrant.deleted == [TEST_COLLECTION]
        assert qdrant.collections[TEST_COLLECTION]["size"] == 768
        assert qdrant.collections[TEST_COLLECTION]["points"] == {}

    @pytest.mark.asyncio
    async def test_recreates_when_liveness_fails(self, reconciler, qdrant):
        """Test a matching collection that cannot be queried is recreated."""
        await qdrant.create_collection(TEST_COLLECTION, 768)
        qdrant.fail_queries = True
        await reconciler.reconcile()
        assert qdrant.deleted == [TEST_COLLECTION]

    @pytest.mark.asyncio
    async def test_recreates_when_unreadable(self, reconciler, qdrant):
        """Test an unreadable description triggers recreation."""
        await qdrant.create_collection(TEST_COLLECTION, 768)
        qdrant.fail_describe = True
        await reconciler.reconcile()
        assert qdrant.deleted == [TEST_COLLECTION]
        assert qdrant.created[-1] == (TEST_COLLECTION, 768)

    @pytest.mark.asyncio
    async def test_force_recreate(self, reconciler, qdrant):
        """Test force_recreate drops a valid collection."""
        await reconciler.reconcile()
        await reconciler.reconcile(force_recreate=True)
        assert qdrant.deleted == [TEST_COLLECTION]
        assert len(qdrant.created) == 2

    @pytest.mark.asyncio
    async def test_store_unavailable(self, reconciler, qdrant, embeddings):
        """Test an unreachable store fails before probing."""
        qdrant.unavailable = True
        with pytest.raises(StoreUnavailableError):
            await reconciler.reconcile()
        assert embeddings.query_calls == []

    @pytest.mark.asyncio
    async def test_liveness_probe_uses_constant_vector(self, reconciler, qdrant):
        """Test the liveness query passes for a healthy collection."""
        await qdrant.create_collection(TEST_COLLECTION, 4)
        assert await reconciler.is_live(4) is True
        assert await reconciler.is_live(8) is False
