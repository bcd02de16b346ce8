"""Tests for the ingestion pipeline."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from rag_service.services.collection_manager import CollectionManager
from rag_service.services.ingestion_service import IngestionService, build_documents
from rag_service.utils.errors import (
    DimensionMismatchError,
    EmptyInputError,
    IngestionError,
    VectorStoreError,
)
from tests.conftest import TEST_COLLECTION


@pytest.fixture
def collections(state, qdrant, embeddings, settings):
    return CollectionManager(state, qdrant, embeddings, settings)


@pytest.fixture
def chain_builder():
    return MagicMock()


@pytest.fixture
def ingestion(state, collections, chain_builder, settings):
    return IngestionService(state, collections, chain_builder=chain_builder, settings=settings)


class TestBuildDocuments:
    """Test chunk documents carry their metadata."""

    def test_metadata(self):
        """Test index, id, timestamp and base metadata are set."""
        docs = build_documents(["one", "two"], {"source": "doc1", "type": "text"})
        assert [d.metadata.chunk_index for d in docs] == [0, 1]
        assert all(d.metadata.source == "doc1" for d in docs)
        assert all(d.metadata.type == "text" for d in docs)
        assert docs[0].metadata.chunk_id != docs[1].metadata.chunk_id
        uuid.UUID(docs[0].metadata.chunk_id)
        assert docs[0].metadata.timestamp.endswith("+00:00")

    def test_default_source(self):
        """Test the source defaults to uploaded_text."""
        docs = build_documents(["one"])
        assert docs[0].metadata.source == "uploaded_text"

    def test_extra_base_metadata_is_kept(self):
        """Test caller keys survive into the payload."""
        doc = build_documents(["one"], {"source": "doc1", "author": "Ada"})[0]
        payload = doc.to_payload()
        assert payload["pageContent"] == "one"
        assert payload["metadata"]["author"] == "Ada"
        assert payload["metadata"]["chunkIndex"] == 0


class TestIngest:
    """Test text ingestion."""

    @pytest.mark.asyncio
    async def test_ingest_stores_chunks(self, ingestion, qdrant, state, chain_builder):
        """Test chunks are stored and the chain is rebuilt."""
        count = await ingestion.ingest(
            "Paris is the capital of France. The Eiffel Tower is in Paris.", {"source": "doc1"}
        )
        assert count == 1
        points = qdrant.collections[TEST_COLLECTION]["points"]
        assert len(points) == 1
        (_, payload), = points.values()
        assert payload["pageContent"].startswith("Paris is the capital of France")
        assert payload["metadata"]["source"] == "doc1"
        assert state.collection_ready is True
        chain_builder.rebuild_chain.assert_called_once()

    @pytest.mark.asyncio
    async def test_point_ids_are_chunk_ids(self, ingestion, qdrant):
        """Test each point id equals its chunk id."""
        await ingestion.ingest("A. " * 800)
        for pid, (_, payload) in qdrant.collections[TEST_COLLECTION]["points"].items():
            assert payload["metadata"]["chunkId"] == pid

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   \n"])
    async def test_empty_text(self, ingestion, text):
        """Test empty text is rejected."""
        with pytest.raises(EmptyInputError):
            await ingestion.ingest(text)

    @pytest.mark.asyncio
    async def test_repairs_dimension_mismatch_once(self, ingestion, collections, qdrant, state):
        """Test a mismatch during upsert recreates the collection and retries."""
        await collections.ensure_ready()
        # collection replaced behind the pipeline's back
        qdrant.collections[TEST_COLLECTION] = {"size": 256, "points": {}}

        count = await ingestion.ingest("Paris is the capital of France.")

        assert count == 1
        assert qdrant.collections[TEST_COLLECTION]["size"] == 768
        assert len(qdrant.collections[TEST_COLLECTION]["points"]) == 1
        assert state.cached_vector_width == 768

    @pytest.mark.asyncio
    async def test_second_failure_is_ingestion_error(self, ingestion, collections, state):
        """Test a failure after the repair surfaces as IngestionError."""
        failing_store = MagicMock()
        failing_store.add_documents = AsyncMock(side_effect=DimensionMismatchError(expected=256, actual=768))

        async def bind(force_recreate=False):
            state.vector_store = failing_store
            state.collection_ready = True

        collections.ensure_ready = AsyncMock(side_effect=bind)

        with pytest.raises(IngestionError) as exc_info:
            await ingestion.ingest("Paris is the capital of France.")

        assert isinstance(exc_info.value.__cause__, DimensionMismatchError)
        assert failing_store.add_documents.await_count == 2
        collections.ensure_ready.assert_awaited_with(force_recreate=True)

    @pytest.mark.asyncio
    async def test_failed_repair_marks_pipeline_uninitialized(self, ingestion, collections, state):
        """Test a repair that cannot recreate the collection leaves the pipeline to re-initialize."""
        mismatched_store = MagicMock()
        mismatched_store.add_documents = AsyncMock(side_effect=DimensionMismatchError(expected=256, actual=768))
        state.vector_store = mismatched_store
        state.collection_ready = True
        state.initialized = True
        collections.ensure_ready = AsyncMock(side_effect=VectorStoreError("transient create failure"))

        with pytest.raises(IngestionError) as exc_info:
            await ingestion.ingest("Paris is the capital of France.")

        assert exc_info.value.details["error_code"] == "QDRANT_ERROR"
        assert state.initialized is False
        assert state.collection_ready is False
        assert state.vector_store is None

    @pytest.mark.asyncio
    async def test_store_unavailable_is_wrapped(self, ingestion, qdrant):
        """Test readiness failures are wrapped with context."""
        qdrant.unavailable = True
        with pytest.raises(IngestionError) as exc_info:
            await ingestion.ingest("Paris is the capital of France.")
        assert exc_info.value.details["error_code"] == "STORE_UNAVAILABLE"

