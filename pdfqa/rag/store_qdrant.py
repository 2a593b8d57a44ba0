"""Qdrant-backed vector store.

All namespaces share one collection; each point carries its namespace in
the payload and every query filters on it. Point ids are derived from
``(namespace, chunk id)`` so re-upserting a chunk replaces its point.
"""
import uuid
from typing import Iterable, List, Sequence

import structlog
from qdrant_client import AsyncQdrantClient
from qdrant_client.http.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PointStruct,
    VectorParams,
)

from pdfqa import config
from pdfqa.errors import StorageError
from pdfqa.rag.store import StoredChunk, VectorStore

logger = structlog.get_logger()

UPSERT_BATCH_SIZE = 100


def point_id(namespace: str, chunk_id: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{namespace}/{chunk_id}"))


def _batch_iter(seq: Sequence, batch_size: int) -> Iterable[Sequence]:
    for i in range(0, len(seq), batch_size):
        yield seq[i : i + batch_size]


class QdrantVectorStore(VectorStore):
    """Managed vector store delegating search to Qdrant."""

    def __init__(
        self,
        client: AsyncQdrantClient,
        collection_name: str = None,
        vector_size: int = None,
    ):
        self.client = client
        self.collection_name = collection_name or config.QDRANT_COLLECTION
        self.vector_size = vector_size or config.EMBEDDING_DIMENSION
        self._collection_ready = False

    @classmethod
    def from_url(cls, url: str, api_key: str = None, **kwargs) -> "QdrantVectorStore":
        client = AsyncQdrantClient(url=url, api_key=api_key, timeout=60)
        return cls(client, **kwargs)

    async def _ensure_collection(self) -> None:
        """Create the collection with cosine distance if it does not exist."""
        if self._collection_ready:
            return

        if not await self.client.collection_exists(self.collection_name):
            logger.info(
                "qdrant_collection_creating",
                collection=self.collection_name,
                dimension=self.vector_size,
            )
            await self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(size=self.vector_size, distance=Distance.COSINE),
            )

        self._collection_ready = True

    async def upsert_many(self, namespace: str, items: Sequence[StoredChunk]) -> None:
        if not items:
            return

        try:
            await self._ensure_collection()

            for batch in _batch_iter(list(items), UPSERT_BATCH_SIZE):
                points = [
                    PointStruct(
                        id=point_id(namespace, item.id),
                        vector=list(item.vector),
                        payload={
                            "namespace": namespace,
                            "chunk_id": item.id,
                            "text": item.text,
                            "source": item.source,
                        },
                    )
                    for item in batch
                ]
                await self.client.upsert(
                    collection_name=self.collection_name, points=points, wait=True
                )
        except Exception as e:
            logger.error("qdrant_upsert_failed", namespace=namespace, error=str(e))
            raise StorageError(f"Failed to upsert into Qdrant: {e}") from e

        logger.info("namespace_upserted", namespace=namespace, upserted=len(items))

    async def query(
        self, namespace: str, vector: Sequence[float], top_k: int
    ) -> List[StoredChunk]:
        if top_k <= 0:
            return []

        try:
            if not self._collection_ready:
                if not await self.client.collection_exists(self.collection_name):
                    return []
                self._collection_ready = True

            response = await self.client.query_points(
                collection_name=self.collection_name,
                query=list(vector),
                query_filter=Filter(
                    must=[FieldCondition(key="namespace", match=MatchValue(value=namespace))]
                ),
                limit=top_k,
                with_payload=True,
            )
        except Exception as e:
            logger.error("qdrant_query_failed", namespace=namespace, error=str(e))
            raise StorageError(f"Failed to query Qdrant: {e}") from e

        # Vectors are not returned by queries
        results = [
            StoredChunk(
                id=(point.payload or {}).get("chunk_id", str(point.id)),
                text=(point.payload or {}).get("text", ""),
                source=(point.payload or {}).get("source", ""),
            )
            for point in response.points
        ]

        logger.info(
            "vector_search_completed",
            namespace=namespace,
            top_k=top_k,
            results_found=len(results),
        )
        return results
