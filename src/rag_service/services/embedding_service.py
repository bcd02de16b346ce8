"""Embedding generation service (provider-agnostic)."""

from __future__ import annotations

from typing import List, Optional

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from rag_service.config import EmbeddingProvider, Settings, get_settings
from rag_service.utils.errors import EmbeddingError
from rag_service.utils.logging import get_logger

logger = get_logger("embedding_service")


class EmbeddingService:
    """
    Embed queries and documents using a configurable provider.

    Providers:
    - openai: OpenAI direct API
    - azure: Azure OpenAI (requires deployment + quota)
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self._provider = self.settings.embedding.provider
        self._model_name = self.settings.embedding.resolved_model_name
        self._client = None  # lazy

    @property
    def model_name(self) -> str:
        return self._model_name

    def _get_client(self):
        """Create the appropriate OpenAI client for the selected provider."""
        if self._client is not None:
            return self._client

        from openai import AsyncAzureOpenAI, AsyncOpenAI

        embedding = self.settings.embedding
        if self._provider == EmbeddingProvider.OPENAI:
            if not embedding.openai_api_key:
                raise EmbeddingError(
                    "OPENAI_API_KEY is required when EMBEDDING_PROVIDER=openai",
                    model=self._model_name,
                )
            self._client = AsyncOpenAI(
                api_key=embedding.openai_api_key,
                base_url=embedding.openai_base_url,
                timeout=embedding.embedding_timeout,
            )
            return self._client

        if self._provider == EmbeddingProvider.AZURE:
            if not embedding.is_configured:
                raise EmbeddingError(
                    "Azure embeddings require AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_API_KEY, and EMBEDDING_DEPLOYMENT_NAME",
                    model=self._model_name,
                )
            self._client = AsyncAzureOpenAI(
                api_key=embedding.azure_openai_api_key,
                azure_endpoint=embedding.azure_openai_endpoint,
                api_version=embedding.azure_openai_api_version,
                timeout=embedding.embedding_timeout,
            )
            return self._client

        raise EmbeddingError(f"Unsupported embedding provider: {self._provider}", model=self._model_name)

    async def _embed_batch(self, inputs: List[str]) -> List[List[float]]:
        """Embed one batch of texts."""
        client = self._get_client()
        try:
            resp = await client.embeddings.create(model=self._model_name, input=inputs)
            return [d.embedding for d in resp.data]
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Embedding request failed: {e}", model=self._model_name) from e

    async def _embed_batch_with_retry(self, inputs: List[str]) -> List[List[float]]:
        """Embed a batch with retry logic (rate limits, transient failures)."""
        # configuration errors are not transient
        self._get_client()
        async for attempt in AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self.settings.embedding.embedding_max_retries)),
            wait=wait_exponential(multiplier=1, min=1, max=30),
            retry=retry_if_exception_type(EmbeddingError),
        ):
            with attempt:
                return await self._embed_batch(inputs)
        # unreachable due to reraise=True, but keeps type checkers happy
        raise EmbeddingError("Embedding retries exhausted", model=self._model_name)

    async def embed_query(self, text: str) -> List[float]:
        """Embed a single piece of text (question or probe string)."""
        vectors = await self._embed_batch_with_retry([text])
        if not vectors or not vectors[0]:
            raise EmbeddingError("Embedding response was empty", model=self._model_name)
        return vectors[0]

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        """
        Embed a list of texts in provider-sized batches.

        Args:
            texts: Texts to embed

        Returns:
            Vectors aligned with the input order
        """
        if not texts:
            return []

        batch_size = max(1, self.settings.embedding.embedding_batch_size)
        logger.info(
            f"Generating embeddings: provider={self._provider.value}, model={self._model_name}, "
            f"texts={len(texts)}, batch_size={batch_size}"
        )

        out: List[List[float]] = []
        for start in range(0, len(texts), batch_size):
            batch = texts[start : start + batch_size]
            vectors = await self._embed_batch_with_retry(batch)
            if len(vectors) != len(batch):
                raise EmbeddingError(
                    "Embedding response size mismatch",
                    model=self._model_name,
                    details={"expected": len(batch), "got": len(vectors)},
                )
            out.extend(vectors)

        logger.info(f"Embeddings generated successfully: count={len(out)}, dimension={len(out[0])}")
        return out
