"""
Embedding maintenance tests: backfill, member re-embedding and invalidation.
"""

import pytest

from server.errors import EmbeddingUnavailableError
from server.services.cache import CacheLayer

from conftest import StubEmbeddingClient, base_data, build_state, run_with_state


def without_embeddings():
    data = base_data()
    data["classes"][0]["embedding"] = None
    data["classes"][1]["embedding"] = None
    return data


class TestBackfill:
    def test_only_missing_by_default(self):
        state = build_state(without_embeddings())
        counts = run_with_state(state, lambda s: s.maintenance.reembed_classes())
        assert counts == {"embedded": 2, "skipped": 3, "failed": 0}

    def test_force_and_ids(self):
        state = build_state(base_data())
        counts = run_with_state(state, lambda s: s.maintenance.reembed_classes(["c-hiit", "missing"], force=True))
        assert counts == {"embedded": 1, "skipped": 0, "failed": 0}

    def test_provider_failure_counted(self):
        state = build_state(without_embeddings(), embedding_client=StubEmbeddingClient(error=EmbeddingUnavailableError("down")))
        counts = run_with_state(state, lambda s: s.maintenance.reembed_classes())
        assert counts["failed"] == 2

    def test_backfilled_class_is_searchable(self):
        state = build_state(without_embeddings())

        async def go(s):
            before = dict(await s.vector_index.search([1.0, 0.0, 0.0], 10))
            await s.maintenance.reembed_classes()
            after = dict(await s.vector_index.search([1.0, 0.0, 0.0], 10))
            return before, after

        before, after = run_with_state(state, go)
        assert "c-yoga" not in before
        assert after["c-yoga"] == pytest.approx(1.0)


class TestMemberMaintenance:
    def test_reembed_member_invalidates(self):
        state = build_state(base_data())

        async def go(s):
            key = CacheLayer.recommendation_key("m-regular")
            await s.cache.set(key, {"stale": True})
            ok = await s.maintenance.reembed_member("m-regular")
            member = await s.store.get_member("m-regular")
            return ok, member.embedding, await s.cache.get(key)

        ok, embedding, cached = run_with_state(state, go)
        assert ok is True
        assert embedding == [1.0, 0.0, 0.0]
        assert cached is None

    def test_empty_profile_is_skipped(self):
        state = build_state(base_data())
        assert run_with_state(state, lambda s: s.maintenance.reembed_member("m-new")) is False

    def test_member_updated_fields(self):
        state = build_state(base_data())

        async def go(s):
            return (
                await s.maintenance.member_updated("m-vector", ["embedding"]),
                await s.maintenance.member_updated("m-vector", ["phone"]),
            )

        assert run_with_state(state, go) == (True, False)


class TestDimensionGuard:
    def test_wrong_length_class_vector_is_rejected(self):
        state = build_state(without_embeddings(), embedding_client=StubEmbeddingClient(vector=[1.0, 0.0]))

        async def go(s):
            ok = await s.maintenance.reembed_class("c-yoga")
            stored = await s.store.get_class("c-yoga")
            hits = await s.vector_index.search([1.0, 0.0, 0.0], 10)
            return ok, stored.embedding, dict(hits)

        ok, embedding, hits = run_with_state(state, go)
        assert ok is False
        assert embedding is None
        assert "c-yoga" not in hits
        assert hits

    def test_wrong_length_member_vector_is_rejected(self):
        state = build_state(base_data(), embedding_client=StubEmbeddingClient(vector=[1.0, 0.0]))

        async def go(s):
            ok = await s.maintenance.reembed_member("m-regular")
            member = await s.store.get_member("m-regular")
            return ok, member.embedding

        assert run_with_state(state, go) == (False, None)
