"""
Cache warming job tests.
"""

import asyncio

from server.jobs.cache_warming import POPULAR_CLASSES_KEY, CacheWarmingJob
from server.services.cache import CacheLayer, InMemoryCacheBackend
from server.services.gym_store import JsonGymStore

from conftest import NOW, base_data


class BrokenPopularStore(JsonGymStore):
    async def popular_class_ids(self, since, limit=50):
        raise RuntimeError("bookings table unavailable")


class BlockingStore(JsonGymStore):
    """popular_class_ids waits until `release` is set."""

    release = None

    async def popular_class_ids(self, since, limit=50):
        await self.release.wait()
        return await super().popular_class_ids(since, limit)


def make_job(store=None):
    cache = CacheLayer(InMemoryCacheBackend())
    job = CacheWarmingJob(store or JsonGymStore(base_data()), cache, clock=lambda: NOW)
    return job, cache


class TestCacheWarming:
    def test_writes_expected_keys(self):
        job, cache = make_job()

        async def go():
            results = await job.run()
            return results, {
                "popular": await cache.get(POPULAR_CLASSES_KEY),
                "yoga_class": await cache.get("class:c-yoga:popular:true"),
                "t2": await cache.get("trainer:schedules:t-2:upcoming:true"),
                "cardio": await cache.get("schedules:category:CARDIO"),
            }

        results, cached = asyncio.run(go())
        assert results["popular_classes"] == {"success": True, "cached": 2, "total": 2}
        assert results["trainer_schedules"] == {"success": True, "cached": 2, "total": 2}
        assert results["schedules_by_category"]["total"] == 3
        assert {c["id"] for c in cached["popular"]} == {"c-yoga", "c-strength"}
        assert cached["yoga_class"]["category"] == "YOGA"
        assert [s["id"] for s in cached["t2"]] == ["s-strength-next", "s-spin-next"]
        assert [s["id"] for s in cached["cardio"]] == ["s-spin-next"]
        assert job.last_results == results

    def test_steps_fail_independently(self, caplog):
        job, _ = make_job(BrokenPopularStore(base_data()))
        results = asyncio.run(job.run())
        assert results["popular_classes"]["success"] is False
        assert "bookings table unavailable" in results["popular_classes"]["error"]
        assert results["trainer_schedules"]["success"] is True
        assert results["schedules_by_category"]["success"] is True
        assert "POPULAR_CLASSES_FAILED" in caplog.text

    def test_overlapping_run_is_skipped(self):
        store = BlockingStore(base_data())
        job, _ = make_job(store)

        async def go():
            store.release = asyncio.Event()
            first = asyncio.create_task(job.run())
            await asyncio.sleep(0.01)
            assert job.is_running
            second = await job.run()
            store.release.set()
            return second, await first

        second, first = asyncio.run(go())
        assert second is None
        assert first is not None and first["popular_classes"]["success"] is True
        assert job.is_running is False
