"""Lifecycle of the single corpus collection."""

from typing import Optional

from rag_service.config import Settings, get_settings
from rag_service.models.collection import CollectionInfo, CollectionStats
from rag_service.services.dimension_reconciler import DimensionReconciler
from rag_service.services.embedding_service import EmbeddingService
from rag_service.services.pipeline_state import PipelineState
from rag_service.services.qdrant_service import QdrantService
from rag_service.services.vector_store import QdrantVectorStore
from rag_service.utils.errors import VectorStoreError
from rag_service.utils.logging import get_logger

logger = get_logger("collection_manager")

# Reported when no width has been detected yet
DEFAULT_VECTOR_DIMENSIONS = 768


class CollectionManager:
    """Reconciles, binds, describes and drops the configured collection."""

    def __init__(
        self,
        state: PipelineState,
        qdrant: QdrantService,
        embeddings: EmbeddingService,
        settings: Optional[Settings] = None,
        reconciler: Optional[DimensionReconciler] = None,
    ) -> None:
        self.state = state
        self.qdrant = qdrant
        self.embeddings = embeddings
        self.settings = settings or get_settings()
        self.reconciler = reconciler or DimensionReconciler(state, qdrant, embeddings, self.settings)

    @property
    def collection_name(self) -> str:
        return self.state.collection_name

    async def ensure_ready(self, force_recreate: bool = False) -> CollectionInfo:
        """
        Reconcile the collection and bind the vector store and retriever to it.

        Raises:
            StoreUnavailableError, EmbeddingError, VectorStoreError: from reconciliation
        """
        width = await self.reconciler.reconcile(force_recreate=force_recreate)
        info = await self.qdrant.get_collection(self.collection_name)
        if info is None:
            raise VectorStoreError(
                "Collection missing after reconciliation",
                details={"collection": self.collection_name},
            )

        store = QdrantVectorStore(self.qdrant, self.embeddings, self.collection_name)
        self.state.vector_store = store
        self.state.retriever = store.as_retriever(self.settings.retrieval.top_k)
        self.state.collection_ready = True
        logger.info(
            f"Collection ready: {self.collection_name} "
            f"(dimensions={width}, points={info.point_count})"
        )
        return info

    async def describe(self) -> CollectionStats:
        """Live statistics; any failure reports an empty, not-ready collection."""
        dimensions = self.state.cached_vector_width or DEFAULT_VECTOR_DIMENSIONS
        try:
            info = await self.qdrant.get_collection(self.collection_name)
        except Exception as e:
            logger.error(f"Failed to get collection stats: {e}")
            return CollectionStats(collection_name=self.collection_name, vector_dimensions=dimensions)

        if info is None:
            return CollectionStats(collection_name=self.collection_name, vector_dimensions=dimensions)

        return CollectionStats(
            total_points=info.point_count,
            vectors_count=info.vectors_count,
            collection_name=self.collection_name,
            is_ready=self.state.generation_chain_ready,
            vector_dimensions=self.state.cached_vector_width or info.vector_width,
        )

    async def point_count(self) -> int:
        return await self.qdrant.count_points(self.collection_name)

    async def validate(self) -> bool:
        """Liveness check of the bound collection."""
        if not self.state.collection_ready or not self.state.cached_vector_width:
            return False
        return await self.reconciler.is_live(self.state.cached_vector_width)

    async def delete(self) -> None:
        await self.qdrant.delete_collection(self.collection_name)
