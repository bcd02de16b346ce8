"""Dimension diagnostics for the corpus collection."""

from typing import Optional

from rag_service.config import Settings, get_settings
from rag_service.models.collection import DiagnosticReport
from rag_service.services.embedding_service import EmbeddingService
from rag_service.services.qdrant_service import QdrantService
from rag_service.utils.errors import VectorStoreError
from rag_service.utils.logging import get_logger

logger = get_logger("diagnostic_service")

DIAGNOSTIC_PROBE_TEXT = "test"


def recommend(embedding_dimensions: int, exists: bool, collection_dimensions: Optional[int]) -> str:
    if not exists:
        return f"Collection will be created automatically with {embedding_dimensions} dimensions."
    if collection_dimensions is None:
        return "Could not determine collection dimensions. Consider recreating the collection."
    if collection_dimensions != embedding_dimensions:
        return (
            f"DIMENSION MISMATCH! Collection expects {collection_dimensions} but model produces "
            f"{embedding_dimensions}. You need to delete the collection."
        )
    return (
        f"Dimensions match! Collection ({collection_dimensions}) matches embedding model "
        f"({embedding_dimensions})."
    )


class DiagnosticService:
    """Compares the embedding width with the collection, independent of pipeline state."""

    def __init__(
        self,
        qdrant: QdrantService,
        embeddings: EmbeddingService,
        settings: Optional[Settings] = None,
    ) -> None:
        self.qdrant = qdrant
        self.embeddings = embeddings
        self.settings = settings or get_settings()

    @property
    def collection_name(self) -> str:
        return self.settings.qdrant.collection_name

    async def diagnose(self) -> DiagnosticReport:
        """
        Raises:
            EmbeddingError: If the embedding probe fails
            VectorStoreError: If collections cannot be listed
        """
        logger.info("Running diagnostic check")
        vector = await self.embeddings.embed_query(DIAGNOSTIC_PROBE_TEXT)
        embedding_dimensions = len(vector)

        exists = await self.qdrant.collection_exists(self.collection_name)
        collection_dimensions: Optional[int] = None
        if exists:
            try:
                info = await self.qdrant.get_collection(self.collection_name)
            except VectorStoreError as e:
                logger.warning(f"Could not read collection dimensions: {e.message}")
            else:
                collection_dimensions = info.vector_width if info else None

        report = DiagnosticReport(
            embedding_dimensions=embedding_dimensions,
            collection_exists=exists,
            collection_dimensions=collection_dimensions,
            recommendation=recommend(embedding_dimensions, exists, collection_dimensions),
        )
        logger.info(f"Diagnostic result: {report.recommendation}")
        return report

    async def force_delete(self) -> None:
        """Delete the collection; failures are logged, not raised."""
        try:
            await self.qdrant.delete_collection(self.collection_name)
        except VectorStoreError as e:
            logger.warning(f"Collection might not exist or already deleted: {e.message}")
            return
        logger.info(f"Force deleted collection: {self.collection_name}")
