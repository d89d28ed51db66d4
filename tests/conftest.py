"""
Shared fixtures: a small gym dataset relative to a fixed clock, stub provider
clients and an AppState wired entirely in memory (no network, no database).
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from recommender.models.config import DEFAULT_CONFIG, RecommendationConfig
from recommender.models.results import AIRecommendation, Priority
from recommender.stages.schedule_suggestions import to_suggestion
from server.app import create_app
from server.config import ServerConfig
from server.services import CacheLayer, InMemoryCacheBackend, InMemoryVectorIndex, JsonGymStore
from server.state import AppState

DIMS = 3
NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def iso(moment: datetime) -> str:
    return moment.isoformat()


def at(days: float, hour: int = 7, minute: int = 0) -> datetime:
    """NOW shifted by `days`, at a fixed wall-clock time (UTC)."""
    return (NOW + timedelta(days=days)).replace(hour=hour, minute=minute)


class FakeClock:
    """Monotonic-style seconds clock for cache TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubEmbeddingClient:
    """Returns a fixed vector (or raises `error`) and records the texts it saw."""

    model = "stub-embedding"

    def __init__(self, vector: Optional[List[float]] = None, error: Optional[Exception] = None,
                 configured: bool = True, dimensions: int = DIMS):
        self.vector = vector or [1.0, 0.0, 0.0]
        self.error = error
        self.configured = configured
        self.dimensions = dimensions
        self.calls: List[str] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def generate_embedding(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise ValueError("Text is required for embedding generation")
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vector)

    async def close(self) -> None:
        pass


class StubAIClient:
    """Re-ranks by reversing the scored order; raises `error` when set."""

    model = "stub-llm"

    def __init__(self, error: Optional[Exception] = None, configured: bool = True):
        self.error = error
        self.configured = configured
        self.class_calls: List[List[str]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def rerank_classes(self, member, cards, limit):
        self.class_calls.append([c.gym_class.id for c in cards])
        if self.error is not None:
            raise self.error
        return [
            AIRecommendation(
                class_id=c.gym_class.id,
                name=c.gym_class.name,
                category=c.gym_class.category,
                reason="Picked for you",
                priority=Priority.HIGH,
                final_score=round(c.final_score, 4),
            )
            for c in list(reversed(list(cards)))[:limit]
        ]

    async def suggest_schedules(self, member, patterns, ranked, limit):
        if self.error is not None:
            raise self.error
        return [to_suggestion(s, score, "Picked for you", Priority.HIGH) for s, score in list(ranked)[:limit]]


# ---------------------------------------------------------------------------
# Data builders
# ---------------------------------------------------------------------------


def gym_class(class_id: str, category: str = "YOGA", difficulty: str = "BEGINNER",
              embedding: Optional[List[float]] = None, **extra) -> Dict[str, Any]:
    return {
        "id": class_id,
        "name": extra.pop("name", class_id.replace("-", " ").title()),
        "description": extra.pop("description", f"{category.title()} class"),
        "category": category,
        "difficulty": difficulty,
        "max_capacity": extra.pop("max_capacity", 20),
        "duration": extra.pop("duration", 60),
        "embedding": embedding,
        **extra,
    }


def schedule(schedule_id: str, class_id: str, start: datetime, trainer_id: str = "t-1",
             room_id: str = "r-1", **extra) -> Dict[str, Any]:
    return {
        "id": schedule_id,
        "class_id": class_id,
        "trainer_id": trainer_id,
        "room_id": room_id,
        "start_time": iso(start),
        "end_time": iso(start + timedelta(hours=1)),
        **extra,
    }


def base_data() -> Dict[str, Any]:
    """
    Members:
        m-new      no history, no embedding, no goals (cold start)
        m-vector   profile embedding, no history
        m-regular  goals and yoga history, no stored embedding
        m-premium  premium + AI opt-in, embedding and history
    """
    return {
        "members": [
            {"id": "m-new", "full_name": "New Member"},
            {"id": "m-vector", "embedding": [1.0, 0.0, 0.0]},
            {"id": "m-regular", "fitness_goals": ["improve flexibility"]},
            {
                "id": "m-premium",
                "embedding": [0.0, 1.0, 0.0],
                "membership_type": "PREMIUM",
                "ai_class_recommendations_enabled": True,
            },
        ],
        "classes": [
            gym_class("c-yoga", "YOGA", "BEGINNER", [1.0, 0.1, 0.0]),
            gym_class("c-pilates", "PILATES", "ALL_LEVELS", [0.9, 0.3, 0.0]),
            gym_class("c-hiit", "CARDIO", "ADVANCED", [0.2, 1.0, 0.0]),
            gym_class("c-strength", "STRENGTH", "BEGINNER", [0.0, 0.8, 0.5]),
            gym_class("c-spin", "CARDIO", "INTERMEDIATE", [0.1, 0.9, 0.2]),
            gym_class("c-retired", "RECOVERY", "BEGINNER", [1.0, 0.0, 0.0], is_active=False),
        ],
        "trainers": [
            {"id": "t-1", "full_name": "Ana Torres"},
            {"id": "t-2", "full_name": "Ben Okafor"},
        ],
        "rooms": [{"id": "r-1", "name": "Studio A", "capacity": 20}],
        "schedules": [
            schedule("s-past-1", "c-yoga", at(-10), status="COMPLETED"),
            schedule("s-past-2", "c-yoga", at(-3), status="COMPLETED"),
            schedule("s-past-3", "c-strength", at(-5, hour=18), trainer_id="t-2", status="COMPLETED"),
            schedule("s-yoga-next", "c-yoga", at(2)),
            schedule("s-strength-next", "c-strength", at(3, hour=18), trainer_id="t-2"),
            schedule("s-spin-next", "c-spin", at(4, hour=12, minute=30), trainer_id="t-2"),
            schedule("s-yoga-far", "c-yoga", at(40)),
        ],
        "bookings": [
            {"member_id": "m-regular", "schedule_id": "s-past-1", "status": "COMPLETED",
             "booked_at": iso(at(-11, hour=7))},
            {"member_id": "m-regular", "schedule_id": "s-past-2", "status": "COMPLETED",
             "booked_at": iso(at(-4, hour=7))},
            {"member_id": "m-regular", "schedule_id": "s-strength-next", "status": "CONFIRMED",
             "booked_at": iso(at(-1, hour=9))},
            {"member_id": "m-premium", "schedule_id": "s-past-3", "status": "COMPLETED",
             "booked_at": iso(at(-6, hour=18))},
        ],
        "attendance": [
            {"member_id": "m-regular", "schedule_id": "s-past-1", "rating": 5, "created_at": iso(at(-10, hour=8))},
            {"member_id": "m-regular", "schedule_id": "s-past-2", "rating": 4, "created_at": iso(at(-3, hour=8))},
            {"member_id": "m-premium", "schedule_id": "s-past-3", "rating": 4, "created_at": iso(at(-5, hour=19))},
        ],
    }


def build_state(
    data: Dict[str, Any],
    *,
    store=None,
    embedding_client=None,
    ai_client=None,
    recommendation_config: Optional[RecommendationConfig] = None,
    cache_backend=None,
) -> AppState:
    """AppState over in-memory backends with the orchestrator pinned to NOW."""
    config = ServerConfig(embedding_dimensions=DIMS, cache_warming_enabled=False)
    state = AppState(
        config,
        store if store is not None else JsonGymStore(data),
        InMemoryVectorIndex(),
        CacheLayer(cache_backend if cache_backend is not None else InMemoryCacheBackend()),
        embedding_client if embedding_client is not None else StubEmbeddingClient(),
        ai_client if ai_client is not None else StubAIClient(configured=False),
        recommendation_config=recommendation_config or DEFAULT_CONFIG,
    )
    state.orchestrator.clock = lambda: NOW
    return state


def run_with_state(state: AppState, fn):
    """Open the state, await fn(state), close it; returns fn's result."""

    async def _main():
        await state.open()
        try:
            return await fn(state)
        finally:
            await state.close()

    return asyncio.run(_main())


@pytest.fixture
def data() -> Dict[str, Any]:
    return base_data()


@pytest.fixture
def state(data) -> AppState:
    return build_state(data)


@pytest.fixture
def client(state):
    with TestClient(create_app(state)) as c:
        yield c
