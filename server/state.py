"""Application state: explicitly constructed stores, clients and services."""

import asyncio
import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine

from recommender.models.config import DEFAULT_CONFIG, RecommendationConfig

from .config import ServerConfig
from .jobs import CacheWarmingJob
from .services import (
    AIClient,
    CacheLayer,
    EmbeddingClient,
    EmbeddingMaintenance,
    GymStore,
    InMemoryCacheBackend,
    InMemoryVectorIndex,
    JsonGymStore,
    MetricsCollector,
    PgVectorIndex,
    QdrantVectorIndex,
    RedisCacheBackend,
    SqlGymStore,
    SuggestionOrchestrator,
    VectorIndex,
    create_engine,
)

logger = logging.getLogger(__name__)


class AppState:
    """
    Everything a request needs, owned in one place.

    Built once per app (from_config in production, directly in tests), opened
    and closed by the FastAPI lifespan. Nothing here is a module-level global.
    """

    def __init__(
        self,
        config: ServerConfig,
        store: GymStore,
        vector_index: VectorIndex,
        cache: CacheLayer,
        embedding_client: EmbeddingClient,
        ai_client: AIClient,
        recommendation_config: RecommendationConfig = DEFAULT_CONFIG,
        engine: Optional[AsyncEngine] = None,
    ):
        self.config = config
        self.store = store
        self.vector_index = vector_index
        self.cache = cache
        self.embedding_client = embedding_client
        self.ai_client = ai_client
        self.recommendation_config = recommendation_config
        self.engine = engine

        self.metrics = MetricsCollector(store, timeout=config.db_timeout_seconds)
        self.orchestrator = SuggestionOrchestrator(
            store=store,
            vector_index=vector_index,
            metrics=self.metrics,
            cache=cache,
            embedding_client=embedding_client,
            ai_client=ai_client,
            config=recommendation_config,
            db_timeout=config.db_timeout_seconds,
            recommendation_ttl=config.recommendation_ttl_seconds,
            tz=config.tz,
            embedding_dimensions=config.embedding_dimensions,
        )
        self.maintenance = EmbeddingMaintenance(
            store=store,
            vector_index=vector_index,
            embedding_client=embedding_client,
            cache=cache,
            db_timeout=config.db_timeout_seconds,
        )
        self.warming_job = CacheWarmingJob(
            store,
            cache,
            listing_ttl=config.listing_ttl_seconds,
            popular_ttl=config.recommendation_ttl_seconds,
        )
        self._warming_task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(cls, config: ServerConfig) -> "AppState":
        """Construct backends named by the configuration (no network I/O yet)."""
        ok, errors = config.validate()
        if not ok:
            raise ValueError("Invalid configuration: " + "; ".join(errors))

        engine = None
        if config.data_source == "postgres" or config.vector_backend == "pgvector":
            engine = create_engine(config.database_url)

        if config.data_source == "postgres":
            store = SqlGymStore(engine)
        else:
            store = JsonGymStore.from_file(config.fixtures_path)

        if config.vector_backend == "pgvector":
            vector_index = PgVectorIndex(engine)
        elif config.vector_backend == "qdrant":
            vector_index = QdrantVectorIndex(
                config.qdrant_url,
                collection_name=config.qdrant_collection,
                dimensions=config.embedding_dimensions,
                timeout=config.db_timeout_seconds,
            )
        else:
            vector_index = InMemoryVectorIndex()

        backend = RedisCacheBackend(config.redis_url) if config.redis_url else InMemoryCacheBackend()
        cache = CacheLayer(
            backend,
            timeout=config.cache_timeout_seconds,
            default_ttl=config.recommendation_ttl_seconds,
        )
        embedding_client = EmbeddingClient(
            api_key=config.openai_api_key,
            model=config.embedding_model,
            dimensions=config.embedding_dimensions,
            timeout=config.embedding_timeout_seconds,
        )
        ai_client = AIClient(
            model=config.ai_model,
            api_key=config.openai_api_key,
            timeout=config.ai_timeout_seconds,
        )
        logger.info(
            "[startup] data_source=%s vector_backend=%s cache=%s",
            config.data_source, vector_index.name, backend.name,
        )
        return cls(config, store, vector_index, cache, embedding_client, ai_client, engine=engine)

    async def open(self) -> None:
        """Prepare the vector index and start the warming loop."""
        if isinstance(self.vector_index, QdrantVectorIndex):
            await self.vector_index.ensure_collection()
        elif isinstance(self.vector_index, InMemoryVectorIndex):
            loaded = 0
            for gym_class in await self.store.list_active_classes():
                if gym_class.embedding:
                    await self.vector_index.upsert(gym_class.id, gym_class.embedding)
                    loaded += 1
            logger.info("[startup] In-memory vector index loaded %d class embeddings", loaded)

        if self.config.cache_warming_enabled:
            self._warming_task = asyncio.create_task(
                self.warming_job.run_forever(
                    initial_delay=self.config.cache_warming_initial_delay_seconds,
                    interval=self.config.cache_warming_interval_seconds,
                )
            )
            logger.info(
                "[startup] Cache warming scheduled every %ds", self.config.cache_warming_interval_seconds
            )

    async def close(self) -> None:
        """Stop background work and release every client, even if one close fails."""
        if self._warming_task is not None:
            self._warming_task.cancel()
            try:
                await self._warming_task
            except asyncio.CancelledError:
                pass
            self._warming_task = None
        for name, closer in (
            ("cache", self.cache.close),
            ("vector_index", self.vector_index.close),
            ("embedding_client", self.embedding_client.close),
        ):
            try:
                await closer()
            except Exception as e:
                logger.warning("[shutdown] CLOSE_FAILED resource=%s error=%s", name, e)
        if self.engine is not None:
            await self.engine.dispose()


def get_state(request: Request) -> AppState:
    """FastAPI dependency: the AppState attached by the lifespan."""
    return request.app.state.engine_state
