"""
Embedding maintenance after writes elsewhere in the platform.

Class and member updates arrive as events. Re-embedding is best effort: it is
attempted, logged and never propagated, so the write that triggered it is
never failed by the embedding provider. Member changes that affect ranking
also drop the member's cached recommendations.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from recommender.embedding import (
    CLASS_EMBEDDING_FIELDS,
    MEMBER_EMBEDDING_FIELDS,
    MEMBER_RECOMMENDATION_FIELDS,
    build_class_text,
    build_member_profile_text,
    needs_reembedding,
)
from recommender.models.member import EmbeddingDimensionError

from .cache import CacheLayer
from .embedding_client import EmbeddingClient
from .gym_store import GymStore
from .vector_index import VectorIndex

logger = logging.getLogger(__name__)


class EmbeddingMaintenance:
    """Keeps class and member vectors in step with their source fields."""

    def __init__(
        self,
        store: GymStore,
        vector_index: VectorIndex,
        embedding_client: EmbeddingClient,
        cache: CacheLayer,
        db_timeout: float = 5.0,
    ):
        self.store = store
        self.vector_index = vector_index
        self.embedding_client = embedding_client
        self.cache = cache
        self.db_timeout = db_timeout

    def _check_dimensions(self, entity_id: str, vector: List[float]) -> None:
        expected = self.embedding_client.dimensions
        if len(vector) != expected:
            raise EmbeddingDimensionError(entity_id, len(vector), expected)

    async def reembed_class(self, class_id: str) -> bool:
        """Regenerate and store one class embedding; False when it could not be done."""
        try:
            gym_class = await asyncio.wait_for(self.store.get_class(class_id), timeout=self.db_timeout)
            if gym_class is None:
                logger.warning("[maintenance] CLASS_NOT_FOUND class_id=%s", class_id)
                return False
            vector = await self.embedding_client.generate_embedding(build_class_text(gym_class))
            self._check_dimensions(class_id, vector)
            await asyncio.wait_for(self.store.update_class_embedding(class_id, vector), timeout=self.db_timeout)
            await asyncio.wait_for(
                self.vector_index.upsert(class_id, vector, is_active=gym_class.is_active is not False),
                timeout=self.db_timeout,
            )
        except Exception as e:
            logger.error("[maintenance] CLASS_REEMBED_FAILED class_id=%s error=%s", class_id, e)
            return False
        logger.info("[maintenance] CLASS_REEMBEDDED class_id=%s dims=%d", class_id, len(vector))
        return True

    async def reembed_classes(self, class_ids: Optional[List[str]] = None, force: bool = False) -> Dict[str, int]:
        """
        Backfill class embeddings one class at a time.

        Without class_ids every active class is considered; classes that
        already have an embedding are skipped unless force is set.
        """
        if class_ids:
            classes = await asyncio.wait_for(self.store.get_classes(class_ids), timeout=self.db_timeout)
        else:
            classes = await asyncio.wait_for(self.store.list_active_classes(), timeout=self.db_timeout)
        counts = {"embedded": 0, "skipped": 0, "failed": 0}
        for gym_class in classes:
            if gym_class.embedding and not force:
                counts["skipped"] += 1
            elif await self.reembed_class(gym_class.id):
                counts["embedded"] += 1
            else:
                counts["failed"] += 1
        logger.info("[maintenance] BACKFILL_DONE %s", counts)
        return counts

    async def reembed_member(self, member_id: str) -> bool:
        """Regenerate a member's profile vector and drop their cached recommendations."""
        try:
            member = await asyncio.wait_for(self.store.get_member(member_id), timeout=self.db_timeout)
            if member is None:
                logger.warning("[maintenance] MEMBER_NOT_FOUND member_id=%s", member_id)
                return False
            text = build_member_profile_text(member)
            if not text:
                logger.info("[maintenance] MEMBER_PROFILE_EMPTY member_id=%s", member_id)
                return False
            vector = await self.embedding_client.generate_embedding(text)
            self._check_dimensions(member_id, vector)
            await asyncio.wait_for(self.store.update_member_embedding(member_id, vector), timeout=self.db_timeout)
        except Exception as e:
            logger.error("[maintenance] MEMBER_REEMBED_FAILED member_id=%s error=%s", member_id, e)
            return False
        await self.cache.invalidate_member(member_id)
        logger.info("[maintenance] MEMBER_REEMBEDDED member_id=%s dims=%d", member_id, len(vector))
        return True

    async def member_updated(self, member_id: str, changed_fields: Iterable[str]) -> bool:
        """Invalidate cached recommendations when ranking inputs changed. True if invalidated."""
        if not needs_reembedding(changed_fields, MEMBER_RECOMMENDATION_FIELDS):
            return False
        await self.cache.invalidate_member(member_id)
        return True

    @staticmethod
    def class_needs_reembedding(changed_fields: Iterable[str]) -> bool:
        return needs_reembedding(changed_fields, CLASS_EMBEDDING_FIELDS)

    @staticmethod
    def member_needs_reembedding(changed_fields: Iterable[str]) -> bool:
        return needs_reembedding(changed_fields, MEMBER_EMBEDDING_FIELDS)
