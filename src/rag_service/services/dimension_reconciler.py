"""Keeps the Qdrant collection's vector width in line with the embedding model."""

import asyncio
from typing import Optional

from rag_service.config import Settings, get_settings
from rag_service.services.embedding_service import EmbeddingService
from rag_service.services.pipeline_state import PipelineState
from rag_service.services.qdrant_service import QdrantService
from rag_service.utils.errors import EmbeddingError, RAGServiceException, VectorStoreError
from rag_service.utils.logging import get_logger

logger = get_logger("dimension_reconciler")

PROBE_TEXT = "test dimension detection"
LIVENESS_VALUE = 0.1


class DimensionReconciler:
    """
    Detect the embedding width and bring the collection to a usable state.

    The width is probed once per pipeline lifetime and cached in the state.
    A collection whose width differs from it, that fails a liveness query, or
    that cannot be described is dropped and created again.
    """

    def __init__(
        self,
        state: PipelineState,
        qdrant: QdrantService,
        embeddings: EmbeddingService,
        settings: Optional[Settings] = None,
    ) -> None:
        self.state = state
        self.qdrant = qdrant
        self.embeddings = embeddings
        self.settings = settings or get_settings()

    async def detect_width(self) -> int:
        """Return the cached embedding width, probing the model on first use."""
        if self.state.cached_vector_width:
            return self.state.cached_vector_width

        vector = await self.embeddings.embed_query(PROBE_TEXT)
        if not vector:
            raise EmbeddingError("Embedding probe returned an empty vector", model=self.embeddings.model_name)

        self.state.cached_vector_width = len(vector)
        logger.info(f"Detected embedding dimensions: {len(vector)}")
        return len(vector)

    async def is_live(self, width: int) -> bool:
        """Run a one-result query with a constant vector of the given width."""
        try:
            await self.qdrant.query_points(
                self.state.collection_name,
                [LIVENESS_VALUE] * width,
                limit=1,
                with_payload=False,
            )
        except RAGServiceException as e:
            logger.warning(f"Collection liveness query failed: {e.message}")
            return False
        return True

    async def reconcile(self, force_recreate: bool = False) -> int:
        """
        Make the collection exist with the embedding width.

        Args:
            force_recreate: Drop and recreate even if the collection looks valid

        Returns:
            The effective vector width

        Raises:
            StoreUnavailableError: If Qdrant cannot be reached
            EmbeddingError: If the width probe fails
            VectorStoreError: If the collection cannot be created or deleted
        """
        name = self.state.collection_name
        await self.qdrant.health_check()
        width = await self.detect_width()

        if not force_recreate:
            try:
                info = await self.qdrant.get_collection(name)
            except VectorStoreError as e:
                logger.warning(f"Collection {name} is unreadable, recreating: {e.message}")
            else:
                if info is None:
                    logger.info(f"Collection {name} does not exist, creating with {width} dimensions")
                    await self._create(width)
                    return width
                if info.vector_width != width:
                    logger.warning(
                        f"Dimension mismatch on {name}: collection={info.vector_width}, embeddings={width}"
                    )
                elif await self.is_live(width):
                    logger.info(f"Collection {name} is valid ({width} dimensions)")
                    return width

        logger.info(f"Recreating collection {name} with {width} dimensions")
        await self.qdrant.delete_collection(name)
        await self._create(width)
        return width

    async def _create(self, width: int) -> None:
        await self.qdrant.create_collection(self.state.collection_name, width)
        delay = self.settings.qdrant.collection_create_delay_seconds
        if delay > 0:
            await asyncio.sleep(delay)
