"""Unit tests for the embedding service."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from rag_service.config import EmbeddingSettings
from rag_service.services.embedding_service import EmbeddingService
from rag_service.utils.errors import EmbeddingError


def _response(*vectors):
    return SimpleNamespace(data=[SimpleNamespace(embedding=list(v)) for v in vectors])


@pytest.fixture
def client():
    mock = MagicMock()
    mock.embeddings.create = AsyncMock()
    return mock


@pytest.fixture
def service(settings, client):
    settings.embedding.embedding_max_retries = 1
    svc = EmbeddingService(settings)
    svc._client = client
    return svc


class TestEmbedQuery:
    """Test single-text embedding."""

    @pytest.mark.asyncio
    async def test_embed_query(self, service, client):
        """Test a query returns its vector."""
        client.embeddings.create.return_value = _response([0.1, 0.2, 0.3])
        vector = await service.embed_query("hello")
        assert vector == [0.1, 0.2, 0.3]
        client.embeddings.create.assert_awaited_once_with(model=service.model_name, input=["hello"])

    @pytest.mark.asyncio
    async def test_embed_query_failure(self, service, client):
        """Test provider failures become EmbeddingError."""
        client.embeddings.create.side_effect = RuntimeError("rate limited")
        with pytest.raises(EmbeddingError, match="rate limited"):
            await service.embed_query("hello")

    @pytest.mark.asyncio
    async def test_empty_response(self, service, client):
        """Test an empty response is an error."""
        client.embeddings.create.return_value = _response()
        with pytest.raises(EmbeddingError):
            await service.embed_query("hello")

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, settings, client):
        """Test one failed attempt is retried."""
        settings.embedding.embedding_max_retries = 2
        svc = EmbeddingService(settings)
        svc._client = client
        client.embeddings.create.side_effect = [RuntimeError("temporary"), _response([1.0])]
        with patch("asyncio.sleep", new=AsyncMock()):
            assert await svc.embed_query("hello") == [1.0]
        assert client.embeddings.create.await_count == 2


class TestEmbedDocuments:
    """Test batched embedding."""

    @pytest.mark.asyncio
    async def test_batches_preserve_order(self, service, client, settings):
        """Test texts are sent in batches and vectors come back in order."""
        settings.embedding.embedding_batch_size = 2
        client.embeddings.create.side_effect = [
            _response([1.0], [2.0]),
            _response([3.0]),
        ]
        vectors = await service.embed_documents(["a", "b", "c"])
        assert vectors == [[1.0], [2.0], [3.0]]
        assert client.embeddings.create.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_input(self, service, client):
        """Test no texts means no calls."""
        assert await service.embed_documents([]) == []
        client.embeddings.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_size_mismatch(self, service, client):
        """Test a short response is rejected."""
        client.embeddings.create.return_value = _response([1.0])
        with pytest.raises(EmbeddingError, match="size mismatch"):
            await service.embed_documents(["a", "b"])


class TestClientConfiguration:
    """Test provider client selection."""

    @pytest.mark.asyncio
    async def test_missing_openai_key(self, settings):
        """Test a missing key fails without retrying."""
        settings.embedding = EmbeddingSettings(embedding_provider="openai", openai_api_key=None)
        with pytest.raises(EmbeddingError, match="OPENAI_API_KEY"):
            await EmbeddingService(settings).embed_query("hello")

    def test_azure_client(self, settings):
        """Test Azure settings build an Azure client."""
        settings.embedding = EmbeddingSettings(
            embedding_provider="azure",
            azure_openai_endpoint="https://example.openai.azure.com",
            azure_openai_api_key="key",
            embedding_deployment_name="embeddings",
        )
        with patch("openai.AsyncAzureOpenAI") as azure:
            svc = EmbeddingService(settings)
            svc._get_client()
        azure.assert_called_once()
        assert svc.model_name == "embeddings"
