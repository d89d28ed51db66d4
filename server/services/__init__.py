"""Backing logic: stores, clients, cache and the request orchestrator."""

from .ai_client import AIClient, parse_json_response
from .cache import CacheBackend, CacheLayer, InMemoryCacheBackend, RedisCacheBackend
from .embedding_client import EmbeddingClient
from .gym_store import GymStore, JsonGymStore
from .maintenance import EmbeddingMaintenance
from .metrics import MetricsCollector
from .orchestrator import STRATEGY_ORDER, StrategyOutcome, SuggestionOrchestrator
from .sql_store import SqlGymStore, create_engine
from .vector_index import InMemoryVectorIndex, PgVectorIndex, QdrantVectorIndex, VectorIndex

__all__ = [
    "AIClient",
    "CacheBackend",
    "CacheLayer",
    "EmbeddingClient",
    "EmbeddingMaintenance",
    "GymStore",
    "InMemoryCacheBackend",
    "InMemoryVectorIndex",
    "JsonGymStore",
    "MetricsCollector",
    "PgVectorIndex",
    "QdrantVectorIndex",
    "RedisCacheBackend",
    "STRATEGY_ORDER",
    "SqlGymStore",
    "StrategyOutcome",
    "SuggestionOrchestrator",
    "VectorIndex",
    "create_engine",
    "parse_json_response",
]
