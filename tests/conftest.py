"""Shared fixtures and in-memory doubles for the embedding, generation and vector-store capabilities."""

import hashlib
import math
import re
from typing import Any, Dict, List, Optional

import pytest
from qdrant_client.models import ScoredPoint

from rag_service.config import (
    ChunkingSettings,
    EmbeddingSettings,
    LLMSettings,
    QdrantSettings,
    RetrievalSettings,
    ServerSettings,
    Settings,
)
from rag_service.models.collection import CollectionInfo
from rag_service.services.pipeline_state import PipelineState
from rag_service.services.rag_service import RagService
from rag_service.utils.errors import (
    DimensionMismatchError,
    EmbeddingError,
    GenerationError,
    StoreUnavailableError,
    VectorStoreError,
)

TEST_COLLECTION = "test_collection"


def hashed_vector(text: str, width: int) -> List[float]:
    """Bag-of-words vector: texts sharing words get a higher cosine similarity."""
    vector = [0.0] * width
    tokens = re.findall(r"\w+", text.lower())
    for token in tokens:
        index = int(hashlib.md5(token.encode()).hexdigest(), 16) % width
        vector[index] += 1.0
    if not tokens:
        vector[0] = 1.0
    return vector


def cosine(a: List[float], b: List[float]) -> float:
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / norm


class FakeEmbeddingService:
    """Deterministic embeddings of a configurable width."""

    def __init__(self, width: int = 768) -> None:
        self.width = width
        self.fail = False
        self.query_calls: List[str] = []

    @property
    def model_name(self) -> str:
        return "fake-embedding"

    async def embed_query(self, text: str) -> List[float]:
        self.query_calls.append(text)
        if self.fail:
            raise EmbeddingError("embedding backend down", model=self.model_name)
        return hashed_vector(text, self.width)

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        if self.fail:
            raise EmbeddingError("embedding backend down", model=self.model_name)
        return [hashed_vector(t, self.width) for t in texts]


class FakeQdrantService:
    """In-memory collections with cosine search and failure switches."""

    def __init__(self) -> None:
        self.collections: Dict[str, Dict[str, Any]] = {}
        self.unavailable = False
        self.fail_queries = False
        self.fail_describe = False
        self.created: List[tuple] = []
        self.deleted: List[str] = []

    async def health_check(self) -> None:
        if self.unavailable:
            raise StoreUnavailableError(details={"error": "connection refused"})

    async def collection_exists(self, collection_name: str) -> bool:
        return collection_name in self.collections

    async def get_collection(self, collection_name: str) -> Optional[CollectionInfo]:
        if self.fail_describe:
            raise VectorStoreError("Failed to read Qdrant collection")
        collection = self.collections.get(collection_name)
        if collection is None:
            return None
        count = len(collection["points"])
        return CollectionInfo(
            name=collection_name,
            vector_width=collection["size"],
            point_count=count,
            vectors_count=count,
        )

    async def create_collection(self, collection_name: str, vector_size: int) -> None:
        self.created.append((collection_name, vector_size))
        self.collections[collection_name] = {"size": vector_size, "points": {}}

    async def delete_collection(self, collection_name: str) -> None:
        self.deleted.append(collection_name)
        self.collections.pop(collection_name, None)

    async def count_points(self, collection_name: str) -> int:
        collection = self.collections.get(collection_name)
        if collection is None:
            raise VectorStoreError("Failed to count Qdrant points")
        return len(collection["points"])

    def _collection(self, collection_name: str, width: int) -> Dict[str, Any]:
        collection = self.collections.get(collection_name)
        if collection is None:
            raise VectorStoreError("Collection not found", details={"collection": collection_name})
        if collection["size"] != width:
            raise DimensionMismatchError(
                "Wrong input: Vector dimension error", expected=collection["size"], actual=width
            )
        return collection

    async def upsert_points(
        self,
        collection_name: str,
        ids: List[str],
        vectors: List[List[float]],
        payloads: List[Dict[str, Any]],
    ) -> int:
        collection = self._collection(collection_name, len(vectors[0]))
        for pid, vector, payload in zip(ids, vectors, payloads):
            collection["points"][pid] = (vector, payload)
        return len(ids)

    async def query_points(
        self,
        collection_name: str,
        vector: List[float],
        limit: int,
        with_payload: bool = True,
    ) -> List[ScoredPoint]:
        if self.fail_queries:
            raise VectorStoreError("Qdrant query failed")
        collection = self._collection(collection_name, len(vector))
        scored = [
            ScoredPoint(
                id=pid,
                version=0,
                score=cosine(vector, stored),
                payload=payload if with_payload else None,
            )
            for pid, (stored, payload) in collection["points"].items()
        ]
        scored.sort(key=lambda p: p.score, reverse=True)
        return scored[:limit]


class FakeLLMService:
    """Records prompts and returns canned answers."""

    def __init__(self, answer: str = "Paris is the capital of France.") -> None:
        self.answer = answer
        self.fragments: Optional[List[Any]] = None
        self.prompts: List[str] = []
        self.fail_generate = 0
        self.fail_stream_after: Optional[int] = None
        self.stream_closed = False

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail_generate:
            self.fail_generate -= 1
            raise GenerationError("model unavailable", model="fake-llm")
        return self.answer

    async def generate_stream(self, prompt: str):
        self.prompts.append(prompt)
        fragments = self.fragments if self.fragments is not None else re.findall(r"\S+\s*", self.answer)
        try:
            for i, fragment in enumerate(fragments):
                if self.fail_stream_after is not None and i >= self.fail_stream_after:
                    raise GenerationError("stream interrupted", model="fake-llm")
                yield fragment
        finally:
            self.stream_closed = True


@pytest.fixture
def settings() -> Settings:
    """Settings with no waits and a dedicated collection name."""
    return Settings(
        qdrant=QdrantSettings(collection_name=TEST_COLLECTION, collection_create_delay_seconds=0),
        embedding=EmbeddingSettings(openai_api_key="test-key"),
        llm=LLMSettings(default_model_name="gpt-4o-mini"),
        chunking=ChunkingSettings(chunk_size=1000, chunk_overlap=200),
        retrieval=RetrievalSettings(top_k=5, ingest_settle_delay_seconds=0, stream_buffer_size=4),
        server=ServerSettings(),
    )


@pytest.fixture
def embeddings() -> FakeEmbeddingService:
    return FakeEmbeddingService()


@pytest.fixture
def qdrant() -> FakeQdrantService:
    return FakeQdrantService()


@pytest.fixture
def llm() -> FakeLLMService:
    return FakeLLMService()


@pytest.fixture
def state() -> PipelineState:
    return PipelineState(collection_name=TEST_COLLECTION)


@pytest.fixture
def rag(settings, qdrant, embeddings, llm) -> RagService:
    """RagService wired to the in-memory doubles."""
    return RagService(settings=settings, qdrant=qdrant, embeddings=embeddings, llm=llm)
