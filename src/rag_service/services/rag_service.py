"""Composition root for the RAG pipeline."""

import asyncio
from typing import AsyncIterator, Optional, Union

from rag_service.config import Settings, get_settings
from rag_service.models.collection import CollectionStats, DiagnosticReport
from rag_service.models.qa import QAResult, QueryError, UploadResult
from rag_service.services.answer_service import AnswerService
from rag_service.services.chunking_service import ChunkingService
from rag_service.services.collection_manager import DEFAULT_VECTOR_DIMENSIONS, CollectionManager
from rag_service.services.diagnostic_service import DiagnosticService
from rag_service.services.embedding_service import EmbeddingService
from rag_service.services.ingestion_service import IngestionService
from rag_service.services.llm_service import LLMService
from rag_service.services.parser_service import ParserService
from rag_service.services.pipeline_state import PipelineState
from rag_service.services.qdrant_service import QdrantService
from rag_service.services.retrieval_service import RetrievalService
from rag_service.utils.errors import RAGServiceException
from rag_service.utils.logging import get_logger

logger = get_logger("rag_service")


class RagService:
    """
    One RAG pipeline over a single collection.

    Owns the pipeline state; `initialize` and `clear` are serialised by a lock.
    Upload and query failures are returned as values rather than raised.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        qdrant: Optional[QdrantService] = None,
        embeddings: Optional[EmbeddingService] = None,
        llm: Optional[LLMService] = None,
        chunker: Optional[ChunkingService] = None,
        parser: Optional[ParserService] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.qdrant = qdrant or QdrantService(self.settings)
        self.embeddings = embeddings or EmbeddingService(self.settings)
        self.llm = llm or LLMService(self.settings)
        self.parser = parser or ParserService()

        self.state = PipelineState(collection_name=self.settings.qdrant.collection_name)
        self._lock = asyncio.Lock()

        self.collections = CollectionManager(self.state, self.qdrant, self.embeddings, self.settings)
        self.retrieval = RetrievalService(self.state, self.qdrant, self.embeddings, self.settings)
        self.answers = AnswerService(self.state, self.retrieval, self.llm, self.settings)
        self.ingestion = IngestionService(
            self.state,
            self.collections,
            chunker=chunker,
            chain_builder=self.answers,
            settings=self.settings,
        )
        self.diagnostics = DiagnosticService(self.qdrant, self.embeddings, self.settings)

    @property
    def is_initialized(self) -> bool:
        return self.state.initialized

    async def initialize(self) -> None:
        """Reconcile the collection and build the chain; a no-op while the pipeline is ready.

        Re-runs after a failed repair has left the collection or chain unbound.
        """
        async with self._lock:
            if self.state.is_ready:
                return
            await self.collections.ensure_ready()
            self.answers.rebuild_chain()
            self.state.initialized = True
            logger.info("RAG service initialized")

    async def upload(
        self, content: bytes, filename: Optional[str], mime_type: Optional[str]
    ) -> UploadResult:
        try:
            await self.initialize()
            document = await self.parser.parse(content, filename, mime_type)
            chunks = await self.ingestion.ingest(document.text, document.metadata)
            stats = await self.collections.describe()
        except RAGServiceException as e:
            logger.error(f"Upload and process error: {e.message}", exc_info=True)
            return UploadResult(success=False, message=f"Error processing file: {e.message}")
        except Exception as e:
            logger.error(f"Unexpected upload error: {e}", exc_info=True)
            return UploadResult(success=False, message=f"Error processing file: {e}")

        logger.info(f"Uploaded {filename}: {chunks} chunks")
        return UploadResult(success=True, message=f"Successfully processed {filename}", stats=stats)

    async def query(self, question: str) -> Union[QAResult, QueryError]:
        try:
            await self.initialize()
            return await self.answers.answer(question)
        except RAGServiceException as e:
            logger.error(f"Query error: {e.message}")
            return QueryError(error=f"Error querying document: {e.message}")

    async def stream_query(self, question: str) -> Union[AsyncIterator[str], QueryError]:
        try:
            await self.initialize()
            return await self.answers.answer_stream(question)
        except RAGServiceException as e:
            logger.error(f"Stream query error: {e.message}")
            return QueryError(error=f"Error streaming query: {e.message}")

    async def stats(self) -> CollectionStats:
        if not self.state.initialized:
            return CollectionStats(
                collection_name=self.state.collection_name,
                vector_dimensions=DEFAULT_VECTOR_DIMENSIONS,
            )
        return await self.collections.describe()

    async def clear(self) -> None:
        """Delete the collection and return to the uninitialized state."""
        async with self._lock:
            try:
                await self.collections.delete()
            finally:
                self.state.reset()
            logger.info("Documents cleared successfully")

    async def diagnose(self) -> DiagnosticReport:
        return await self.diagnostics.diagnose()

    async def force_delete(self) -> None:
        await self.diagnostics.force_delete()
        async with self._lock:
            self.state.reset()
