"""Chunk, embed and store document text."""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from rag_service.config import Settings, get_settings
from rag_service.models.document import ChunkDocument, ChunkMetadata
from rag_service.services.chunking_service import ChunkingService
from rag_service.services.collection_manager import CollectionManager
from rag_service.services.pipeline_state import PipelineState
from rag_service.utils.errors import (
    DimensionMismatchError,
    EmptyInputError,
    IngestionError,
    RAGServiceException,
)
from rag_service.utils.logging import get_logger, log_stage

logger = get_logger("ingestion_service")


class ChainBuilder(Protocol):
    def rebuild_chain(self) -> Any: ...


def build_documents(chunks: List[str], base_metadata: Optional[Dict[str, Any]] = None) -> List[ChunkDocument]:
    """One ChunkDocument per chunk, sharing a timestamp and the base metadata."""
    base = dict(base_metadata or {})
    timestamp = datetime.now(timezone.utc).isoformat()
    documents = []
    for index, chunk in enumerate(chunks):
        metadata = {
            **base,
            "chunkIndex": index,
            "chunkId": str(uuid.uuid4()),
            "timestamp": timestamp,
            "source": base.get("source") or "uploaded_text",
        }
        documents.append(ChunkDocument(content=chunk, metadata=ChunkMetadata.model_validate(metadata)))
    return documents


class IngestionService:
    """
    Turns text into stored chunks.

    A dimension mismatch reported by the store triggers one forced
    reconciliation of the collection and one retry of the upsert.
    """

    def __init__(
        self,
        state: PipelineState,
        collections: CollectionManager,
        chunker: Optional[ChunkingService] = None,
        chain_builder: Optional[ChainBuilder] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.state = state
        self.collections = collections
        self.chunker = chunker or ChunkingService()
        self.chain_builder = chain_builder
        self.settings = settings or get_settings()

    async def ingest(self, text: str, base_metadata: Optional[Dict[str, Any]] = None) -> int:
        """
        Ingest text into the collection.

        Args:
            text: Document text
            base_metadata: Metadata copied onto every chunk

        Returns:
            Number of chunks stored

        Raises:
            EmptyInputError: If the text is empty or whitespace-only
            ChunkingError: If the chunking configuration is invalid
            IngestionError: If the chunks could not be stored
        """
        if not text or not text.strip():
            raise EmptyInputError("No text content provided")

        start = time.perf_counter()
        chunks = self.chunker.split(
            text,
            chunk_size=self.settings.chunking.chunk_size,
            overlap=self.settings.chunking.chunk_overlap,
        )
        logger.info(f"Split text into {len(chunks)} chunks")
        documents = build_documents(chunks, base_metadata)

        try:
            if not self.state.collection_ready:
                await self.collections.ensure_ready()
            stored = await self._store(documents)
        except (EmptyInputError, IngestionError):
            raise
        except RAGServiceException as e:
            raise IngestionError(
                f"Failed to process text: {e.message}",
                details={"chunks": len(documents), "error_code": e.code},
            ) from e

        delay = self.settings.retrieval.ingest_settle_delay_seconds
        if delay > 0:
            await asyncio.sleep(delay)

        if self.chain_builder is not None:
            self.chain_builder.rebuild_chain()
        log_stage("ingest", (time.perf_counter() - start) * 1000, chunks=stored)
        return stored

    async def _store(self, documents: List[ChunkDocument]) -> int:
        store = self.state.require_collection()
        try:
            return await store.add_documents(documents)
        except DimensionMismatchError as e:
            logger.warning(f"Dimension error during document addition, recreating collection: {e.message}")

        self.state.unbind_collection()
        try:
            await self.collections.ensure_ready(force_recreate=True)
        except RAGServiceException:
            self.state.initialized = False
            raise
        store = self.state.require_collection()
        try:
            stored = await store.add_documents(documents)
        except RAGServiceException as e:
            raise IngestionError(
                f"Failed to process text after recreating the collection: {e.message}",
                details={"chunks": len(documents), "error_code": e.code},
            ) from e
        logger.info(f"Added {stored} documents after recreating the collection")
        return stored
