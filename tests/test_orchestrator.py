"""
Strategy selection tests for the suggestion orchestrator (no HTTP layer).
"""

import logging
from types import SimpleNamespace

from recommender.models.config import RecommendationConfig
from server.errors import AIMalformedResponseError, AIRateLimitError
from server.services import ai_client as ai_module
from server.services.ai_client import AIClient
from server.services.cache import CacheLayer, InMemoryCacheBackend
from server.services.orchestrator import STRATEGY_ORDER

from conftest import StubAIClient, base_data, build_state, run_with_state


class BrokenCacheBackend(InMemoryCacheBackend):
    name = "broken"

    async def get(self, key):
        raise ConnectionError("cache down")

    async def setex(self, key, ttl_seconds, value):
        raise ConnectionError("cache down")


def recommend(state, member_id, **kwargs):
    return run_with_state(state, lambda s: s.orchestrator.recommend_classes(member_id, **kwargs))


class TestStrategyOrder:
    def test_order(self):
        assert STRATEGY_ORDER == ("ai_based", "vector_embedding", "rule_based", "cold_start")


class TestAIPath:
    def test_premium_member_gets_ai_ranking(self):
        ai = StubAIClient()
        state = build_state(base_data(), ai_client=ai)
        result = recommend(state, "m-premium", use_ai=True)
        assert result["method"] == "ai_based"
        assert len(ai.class_calls) == 1
        # The re-ranker only ever sees scored candidates
        assert [r["class_id"] for r in result["recommendations"]] == list(reversed(ai.class_calls[0]))[:10]

    def test_rate_limit_falls_through_to_vector(self, caplog):
        caplog.set_level(logging.INFO)
        state = build_state(base_data(), ai_client=StubAIClient(error=AIRateLimitError("429")))
        result = recommend(state, "m-premium", use_ai=True)
        assert result["method"] == "vector_embedding"
        assert "[ai_path] RATE_LIMITED" in caplog.text
        assert "STRATEGY_SKIPPED member_id=m-premium strategy=ai_based reason=rate limited" in caplog.text

    def test_malformed_response_falls_through(self):
        state = build_state(base_data(), ai_client=StubAIClient(error=AIMalformedResponseError("not json")))
        assert recommend(state, "m-premium", use_ai=True)["method"] == "vector_embedding"

    def test_empty_provider_reply_falls_through(self, monkeypatch):
        async def _acompletion(**kwargs):
            return SimpleNamespace(choices=[])

        monkeypatch.setattr(ai_module, "acompletion", _acompletion)
        state = build_state(base_data(), ai_client=AIClient(api_key="sk-test"))
        assert recommend(state, "m-premium", use_ai=True)["method"] == "vector_embedding"
        data = run_with_state(state, lambda s: s.orchestrator.schedule_suggestions("m-premium", use_ai=True))
        assert data["method"] == "rule_based"

    def test_basic_member_never_uses_ai(self):
        ai = StubAIClient()
        state = build_state(base_data(), ai_client=ai)
        assert recommend(state, "m-vector", use_ai=True)["method"] == "vector_embedding"
        assert ai.class_calls == []

    def test_ai_without_vector_uses_rule_scores(self):
        ai = StubAIClient()
        state = build_state(base_data(), ai_client=ai)
        result = recommend(state, "m-premium", use_ai=True, use_vector=False)
        assert result["method"] == "ai_based"
        assert len(ai.class_calls[0]) == 5

    def test_ai_schedule_suggestions(self):
        state = build_state(base_data(), ai_client=StubAIClient())
        data = run_with_state(state, lambda s: s.orchestrator.schedule_suggestions("m-premium", use_ai=True))
        assert data["method"] == "ai_based"
        assert data["suggestions"]

    def test_ai_schedule_failure_uses_rules(self):
        state = build_state(base_data(), ai_client=StubAIClient(error=AIRateLimitError("429")))
        data = run_with_state(state, lambda s: s.orchestrator.schedule_suggestions("m-premium", use_ai=True))
        assert data["method"] == "rule_based"


class TestDegradation:
    def test_dimension_mismatch_uses_rules(self, caplog):
        data = base_data()
        data["members"].append({"id": "m-old", "embedding": [0.5, 0.5]})
        state = build_state(data)
        result = recommend(state, "m-old")
        assert result["method"] == "rule_based"
        assert result["cold_start"] is False
        assert "EMBEDDING_DIMENSION_MISMATCH" in caplog.text

    def test_all_candidates_filtered_falls_through(self):
        data = base_data()
        data["members"].append(
            {"id": "m-heart", "embedding": [0.0, 1.0, 0.0], "medical_conditions": ["heart condition"]}
        )
        # Only the contraindicated class is retrievable
        for c in data["classes"]:
            if c["id"] != "c-hiit":
                c["embedding"] = None
        state = build_state(data)
        result = recommend(state, "m-heart")
        assert result["method"] == "rule_based"
        assert "c-hiit" not in [r["class_id"] for r in result["recommendations"]]

    def test_cache_outage_still_serves(self):
        state = build_state(base_data(), cache_backend=BrokenCacheBackend())
        first = recommend(state, "m-vector")
        assert first["method"] == "vector_embedding"
        assert first["cached"] is False

    def test_recommended_categories_feed_diversity(self):
        state = build_state(base_data(), recommendation_config=RecommendationConfig(recommendation_limit=3))

        async def go(s):
            await s.orchestrator.recommend_classes("m-vector")
            return await s.cache.recent_categories("m-vector")

        recent = run_with_state(state, go)
        assert len(recent) == 3
        assert recent[0] == "YOGA"

    def test_cold_start_without_beginner_classes(self):
        data = base_data()
        data["classes"] = [c for c in data["classes"] if c["difficulty"] not in ("BEGINNER", "ALL_LEVELS")]
        result = recommend(build_state(data), "m-new")
        assert result["cold_start"] is True
        assert [r["class_id"] for r in result["recommendations"]][0] == "getting-started-yoga"

    def test_semantic_search_limit(self):
        state = build_state(base_data())
        data = run_with_state(state, lambda s: s.orchestrator.semantic_search("yoga", limit=2))
        assert data["count"] == 2


class TestCacheKeys:
    def test_result_cached_under_request_params(self):
        state = build_state(base_data())

        async def go(s):
            await s.orchestrator.recommend_classes("m-vector", use_vector=True)
            return await s.cache.get(CacheLayer.recommendation_key("m-vector", {"useVector": True}))

        entry = run_with_state(state, go)
        assert entry["result"]["method"] == "vector_embedding"
        assert "generated_at" in entry
