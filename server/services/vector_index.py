"""
Vector Index abstraction.

Stores one embedding per class and returns the nearest active classes for a
query vector. Implementations: in-memory numpy (local, tests), pgvector
(production, same database as the gym store), Qdrant. Swap via VECTOR_BACKEND.

search() never raises: on storage failure it logs and returns [], which callers
treat as "no vector signal", not "no classes".
"""

import logging
import uuid
from typing import Dict, List, Optional, Protocol, Tuple

from qdrant_client import AsyncQdrantClient
from qdrant_client.http import models
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from recommender.embedding import EMBEDDING_DIMENSIONS
from recommender.utils.similarity import top_k_cosine

from .sql_store import GymClassRow

logger = logging.getLogger(__name__)


class VectorIndex(Protocol):
    """Protocol for class-embedding nearest-neighbour search."""

    name: str

    async def search(self, query_vector: List[float], k: int) -> List[Tuple[str, float]]:
        """(class_id, cosine similarity in [-1, 1]) pairs, highest first, at most k."""
        ...

    async def upsert(self, class_id: str, vector: List[float], is_active: bool = True) -> None:
        """Store or replace the embedding for one class."""
        ...

    async def close(self) -> None:
        ...


class InMemoryVectorIndex:
    """Numpy cosine search over an in-process map. Used for local runs and tests."""

    name = "memory"

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None):
        self._vectors: Dict[str, List[float]] = dict(vectors or {})
        self._inactive: set = set()

    async def search(self, query_vector: List[float], k: int) -> List[Tuple[str, float]]:
        eligible = {cid: v for cid, v in self._vectors.items() if v and cid not in self._inactive}
        try:
            return top_k_cosine(query_vector, eligible, k)
        except ValueError as e:
            logger.error("[vector_index] MEMORY_SEARCH_FAILED k=%d error=%s", k, e)
            return []

    async def upsert(self, class_id: str, vector: List[float], is_active: bool = True) -> None:
        self._vectors[class_id] = list(vector)
        if is_active:
            self._inactive.discard(class_id)
        else:
            self._inactive.add(class_id)

    async def close(self) -> None:
        pass


class PgVectorIndex:
    """
    pgvector search on gym_classes.embedding.

    ORDER BY embedding <=> :query LIMIT k over active rows with an embedding;
    similarity is reported as 1 - cosine distance.
    """

    name = "pgvector"

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)

    async def search(self, query_vector: List[float], k: int) -> List[Tuple[str, float]]:
        if not query_vector or k <= 0:
            return []
        distance = GymClassRow.embedding.cosine_distance(query_vector).label("distance")
        stmt = (
            select(GymClassRow.id, distance)
            .where(GymClassRow.is_active.is_(True))
            .where(GymClassRow.embedding.is_not(None))
            .order_by(distance)
            .limit(k)
        )
        try:
            async with self._sessions() as session:
                rows = (await session.execute(stmt)).all()
        except Exception as e:
            logger.error("[vector_index] PGVECTOR_SEARCH_FAILED k=%d error=%s", k, e)
            return []
        return [(class_id, 1.0 - float(d)) for class_id, d in rows]

    async def upsert(self, class_id: str, vector: List[float], is_active: bool = True) -> None:
        async with self._sessions() as session:
            await session.execute(
                update(GymClassRow).where(GymClassRow.id == class_id).values(embedding=vector)
            )
            await session.commit()

    async def close(self) -> None:
        # Engine is owned by AppState and disposed there
        pass


# Qdrant point ids must be unsigned ints or UUIDs; class ids are mapped to stable UUIDs
_POINT_NAMESPACE = uuid.UUID("6f1c5f3e-2b1a-4f0e-9c57-1d8a4c2e9b70")


def point_id(class_id: str) -> str:
    return str(uuid.uuid5(_POINT_NAMESPACE, class_id))


class QdrantVectorIndex:
    """
    Class embeddings in a Qdrant collection (cosine distance).

    Payload: {"class_id": str, "is_active": bool}; search filters on is_active.
    """

    name = "qdrant"

    def __init__(
        self,
        url: str,
        collection_name: str = "gym_classes",
        dimensions: int = EMBEDDING_DIMENSIONS,
        timeout: float = 5.0,
    ):
        self.url = url
        self.collection_name = collection_name
        self.dimensions = dimensions
        self.client = AsyncQdrantClient(url=url, timeout=int(timeout))

    async def ensure_collection(self) -> None:
        """Create the collection if it does not exist yet."""
        if await self.client.collection_exists(self.collection_name):
            return
        await self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=models.VectorParams(size=self.dimensions, distance=models.Distance.COSINE),
        )
        logger.info("[vector_index] QDRANT_COLLECTION_CREATED name=%s", self.collection_name)

    async def search(self, query_vector: List[float], k: int) -> List[Tuple[str, float]]:
        if not query_vector or k <= 0:
            return []
        try:
            response = await self.client.query_points(
                collection_name=self.collection_name,
                query=query_vector,
                limit=k,
                query_filter=models.Filter(
                    must=[models.FieldCondition(key="is_active", match=models.MatchValue(value=True))]
                ),
                with_payload=True,
            )
        except Exception as e:
            logger.error("[vector_index] QDRANT_SEARCH_FAILED k=%d error=%s", k, e)
            return []
        return [
            (str(p.payload.get("class_id")), float(p.score))
            for p in response.points
            if p.payload and p.payload.get("class_id")
        ]

    async def upsert(self, class_id: str, vector: List[float], is_active: bool = True) -> None:
        await self.client.upsert(
            collection_name=self.collection_name,
            points=[
                models.PointStruct(
                    id=point_id(class_id),
                    vector=vector,
                    payload={"class_id": class_id, "is_active": is_active},
                )
            ],
        )

    async def close(self) -> None:
        await self.client.close()
