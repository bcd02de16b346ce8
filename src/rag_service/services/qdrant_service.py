"""Qdrant integration service for the single corpus collection."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.models import (
    Distance,
    OptimizersConfigDiff,
    PointStruct,
    ScoredPoint,
    VectorParams,
)

from rag_service.config import Settings, get_settings
from rag_service.models.collection import CollectionInfo
from rag_service.utils.errors import (
    DimensionMismatchError,
    StoreUnavailableError,
    VectorStoreError,
)
from rag_service.utils.logging import get_logger

logger = get_logger("qdrant_service")


def _is_not_found(error: Exception) -> bool:
    if isinstance(error, UnexpectedResponse) and getattr(error, "status_code", None) == 404:
        return True
    msg = str(error).lower()
    return "not found" in msg or "404" in msg


def _is_dimension_error(error: Exception) -> bool:
    return "dimension" in str(error).lower()


def _vector_width(info: Any) -> Optional[int]:
    """Read the default vector size from a Qdrant collection description."""
    try:
        vectors = info.config.params.vectors
    except AttributeError:
        return None
    size = getattr(vectors, "size", None)
    if size is None and isinstance(vectors, dict) and "size" in vectors:
        size = vectors["size"]
    return int(size) if size is not None else None


class QdrantService:
    """
    Thin async wrapper over the blocking Qdrant client.

    Every call runs in a worker thread. Failures are mapped to:
    - StoreUnavailableError when the server cannot be reached
    - DimensionMismatchError when vectors do not fit the collection
    - VectorStoreError for any other failed operation
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[QdrantClient] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client: Optional[QdrantClient] = client

    def _get_client(self) -> QdrantClient:
        if self._client is not None:
            return self._client

        self._client = QdrantClient(
            url=self.settings.qdrant.url,
            api_key=self.settings.qdrant.api_key,
            timeout=self.settings.qdrant.timeout,
        )
        return self._client

    async def health_check(self) -> None:
        """Verify the server answers; raises StoreUnavailableError otherwise."""
        try:
            await asyncio.to_thread(lambda: self._get_client().get_collections())
        except Exception as e:
            logger.error(f"Qdrant connection failed: {e}")
            raise StoreUnavailableError(
                details={"url": self.settings.qdrant.url, "error": str(e)}
            ) from e

    async def collection_exists(self, collection_name: str) -> bool:
        def _exists() -> bool:
            collections = self._get_client().get_collections().collections
            return any(c.name == collection_name for c in collections)

        try:
            return await asyncio.to_thread(_exists)
        except Exception as e:
            raise VectorStoreError(
                "Failed to list Qdrant collections",
                details={"collection": collection_name, "error": str(e)},
            ) from e

    async def get_collection(self, collection_name: str) -> Optional[CollectionInfo]:
        """
        Describe a collection.

        Returns:
            CollectionInfo, or None if the collection does not exist

        Raises:
            VectorStoreError: If the description cannot be read
        """
        try:
            info = await asyncio.to_thread(
                lambda: self._get_client().get_collection(collection_name)
            )
        except Exception as e:
            if _is_not_found(e):
                return None
            raise VectorStoreError(
                "Failed to read Qdrant collection",
                details={"collection": collection_name, "error": str(e)},
            ) from e

        width = _vector_width(info)
        if width is None:
            raise VectorStoreError(
                "Qdrant collection has no readable vector size",
                details={"collection": collection_name},
            )
        points = info.points_count or 0
        return CollectionInfo(
            name=collection_name,
            vector_width=width,
            point_count=points,
            vectors_count=getattr(info, "vectors_count", None) or points,
        )

    async def create_collection(self, collection_name: str, vector_size: int) -> None:
        """Create a cosine collection with the given vector size."""

        def _create() -> None:
            self._get_client().create_collection(
                collection_name=collection_name,
                vectors_config=VectorParams(size=vector_size, distance=Distance.COSINE),
                optimizers_config=OptimizersConfigDiff(default_segment_number=2),
                replication_factor=1,
            )

        try:
            await asyncio.to_thread(_create)
            logger.info(f"Created Qdrant collection: {collection_name} (vector_size={vector_size})")
        except Exception as e:
            raise VectorStoreError(
                "Failed to create Qdrant collection",
                details={"collection": collection_name, "vector_size": vector_size, "error": str(e)},
            ) from e

    async def delete_collection(self, collection_name: str) -> None:
        """Delete a collection; a missing collection is not an error."""
        try:
            await asyncio.to_thread(
                lambda: self._get_client().delete_collection(collection_name=collection_name)
            )
            logger.info(f"Deleted Qdrant collection: {collection_name}")
        except Exception as e:
            if _is_not_found(e):
                logger.info(f"Qdrant collection already absent: {collection_name}")
                return
            raise VectorStoreError(
                "Failed to delete Qdrant collection",
                details={"collection": collection_name, "error": str(e)},
            ) from e

    async def count_points(self, collection_name: str) -> int:
        try:
            result = await asyncio.to_thread(
                lambda: self._get_client().count(collection_name=collection_name, exact=True)
            )
            return int(result.count)
        except Exception as e:
            raise VectorStoreError(
                "Failed to count Qdrant points",
                details={"collection": collection_name, "error": str(e)},
            ) from e

    async def upsert_points(
        self,
        collection_name: str,
        ids: List[str],
        vectors: List[List[float]],
        payloads: List[Dict[str, Any]],
    ) -> int:
        """
        Upsert points and wait for the write to be acknowledged.

        Raises:
            DimensionMismatchError: If Qdrant rejects the vector size
            VectorStoreError: For any other failure
        """
        if not (len(ids) == len(vectors) == len(payloads)):
            raise VectorStoreError(
                "Point ids, vectors and payloads length mismatch",
                details={"ids": len(ids), "vectors": len(vectors), "payloads": len(payloads)},
            )

        points = [
            PointStruct(id=pid, vector=vector, payload=payload)
            for pid, vector, payload in zip(ids, vectors, payloads)
        ]
        try:
            await asyncio.to_thread(
                lambda: self._get_client().upsert(
                    collection_name=collection_name, points=points, wait=True
                )
            )
        except Exception as e:
            if _is_dimension_error(e):
                raise DimensionMismatchError(
                    f"Qdrant rejected vectors: {e}",
                    actual=len(vectors[0]) if vectors else None,
                    details={"collection": collection_name},
                ) from e
            raise VectorStoreError(
                "Failed to upsert vectors into Qdrant",
                details={"collection": collection_name, "error": str(e)},
            ) from e

        logger.info(f"Qdrant upsert complete: collection={collection_name}, points={len(points)}")
        return len(points)

    async def query_points(
        self,
        collection_name: str,
        vector: List[float],
        limit: int,
        with_payload: bool = True,
    ) -> List[ScoredPoint]:
        """Nearest-neighbour query; results ordered by descending similarity."""
        try:
            response = await asyncio.to_thread(
                lambda: self._get_client().query_points(
                    collection_name=collection_name,
                    query=vector,
                    limit=limit,
                    with_payload=with_payload,
                )
            )
        except Exception as e:
            if _is_dimension_error(e):
                raise DimensionMismatchError(
                    f"Qdrant rejected query vector: {e}",
                    actual=len(vector),
                    details={"collection": collection_name},
                ) from e
            raise VectorStoreError(
                "Qdrant query failed",
                details={"collection": collection_name, "error": str(e)},
            ) from e
        return list(response.points)
