"""Three-tier retrieval with ordered fallback."""

import time
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from rag_service.config import Settings, get_settings
from rag_service.models.document import ChunkDocument
from rag_service.models.results import (
    RetrievalResult,
    RetrievalTier,
    TierFailure,
    TierOutcome,
    TierSuccess,
)
from rag_service.services.embedding_service import EmbeddingService
from rag_service.services.pipeline_state import PipelineState
from rag_service.services.qdrant_service import QdrantService
from rag_service.utils.errors import (
    EmptyCorpusError,
    NotInitializedError,
    RetrievalExhaustedError,
)
from rag_service.utils.logging import get_logger, log_stage

logger = get_logger("retrieval_service")

Strategy = Callable[[str, int], Awaitable[List[ChunkDocument]]]


class RetrievalService:
    """
    Retrieve the chunks most similar to a question.

    Tiers, tried in order until one succeeds:
    1. structured: vector store similarity search
    2. raw: the bound retriever handle
    3. direct: embed the question and query Qdrant, rebuilding chunks from payloads
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

    def strategies(self) -> List[Tuple[RetrievalTier, Strategy]]:
        return [
            (RetrievalTier.STRUCTURED, self._structured),
            (RetrievalTier.RAW, self._raw),
            (RetrievalTier.DIRECT, self._direct),
        ]

    async def _structured(self, question: str, k: int) -> List[ChunkDocument]:
        return await self.state.require_collection().similarity_search(question, k)

    async def _raw(self, question: str, k: int) -> List[ChunkDocument]:
        if self.state.retriever is None:
            raise NotInitializedError()
        return await self.state.retriever.invoke(question, k)

    async def _direct(self, question: str, k: int) -> List[ChunkDocument]:
        vector = await self.embeddings.embed_query(question)
        points = await self.qdrant.query_points(
            self.state.collection_name, vector, limit=k, with_payload=True
        )
        return [ChunkDocument.from_payload(p.payload) for p in points]

    async def _run_tier(
        self, tier: RetrievalTier, strategy: Strategy, question: str, k: int
    ) -> TierOutcome:
        try:
            documents = await strategy(question, k)
        except Exception as e:
            logger.warning(f"Retrieval tier {tier.value} failed: {e}")
            return TierFailure(tier=tier, error=e)
        return TierSuccess(tier=tier, documents=documents)

    async def retrieve(self, question: str, top_k: Optional[int] = None) -> RetrievalResult:
        """
        Retrieve up to top_k chunks, most similar first.

        Raises:
            NotInitializedError: If the collection is not bound
            EmptyCorpusError: If the collection holds no points
            ValueError: If top_k is less than 1
            RetrievalExhaustedError: If every tier failed
        """
        if not self.state.collection_ready:
            raise NotInitializedError()

        k = top_k if top_k is not None else self.settings.retrieval.top_k
        if k < 1:
            raise ValueError(f"top_k must be >= 1, got {k}")
        total_points = await self.qdrant.count_points(self.state.collection_name)
        if total_points == 0:
            raise EmptyCorpusError(collection=self.state.collection_name)
        logger.info(f"Collection has {total_points} documents")

        start = time.perf_counter()
        failures: List[TierFailure] = []
        for tier, strategy in self.strategies():
            outcome = await self._run_tier(tier, strategy, question, k)
            if isinstance(outcome, TierSuccess):
                log_stage(
                    "retrieval",
                    (time.perf_counter() - start) * 1000,
                    tier=tier.value,
                    documents=len(outcome.documents),
                )
                return RetrievalResult(documents=outcome.documents, tier=tier)
            failures.append(outcome)

        tier_errors: List[Dict[str, str]] = [
            {"tier": f.tier.value, "error": str(f.error)} for f in failures
        ]
        raise RetrievalExhaustedError(cause=failures[-1].error, tier_errors=tier_errors)
