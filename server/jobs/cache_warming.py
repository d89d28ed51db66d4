"""
Cache warming job.

Pre-populates the cache with the listings most requests ask for: popular
classes, each trainer's upcoming schedules and upcoming schedules per
category. Runs hourly (first run shortly after startup) as a background
asyncio task. Each step fails independently and reports its own result; an
in-progress run makes the next trigger a no-op.
"""

import asyncio
import logging
import time
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from recommender.models.schedule import ScheduleOccurrence

from ..services.cache import DEFAULT_TTL_SECONDS, LISTING_TTL_SECONDS, CacheLayer
from ..services.gym_store import GymStore

logger = logging.getLogger(__name__)

POPULAR_LOOKBACK_DAYS = 30
POPULAR_CLASS_LIMIT = 50
UPCOMING_DAYS = 7
TRAINER_SCHEDULE_LIMIT = 50
CATEGORY_SCHEDULE_LIMIT = 100
# Upper bound on occurrences pulled for one warming pass
UPCOMING_SCAN_LIMIT = 2000

POPULAR_CLASSES_KEY = "classes:popular"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheWarmingJob:
    """Periodic cache warmer with an overlap guard."""

    def __init__(
        self,
        store: GymStore,
        cache: CacheLayer,
        listing_ttl: int = LISTING_TTL_SECONDS,
        popular_ttl: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.cache = cache
        self.listing_ttl = listing_ttl
        self.popular_ttl = popular_ttl
        self.clock = clock
        self.is_running = False
        self.last_results: Optional[Dict[str, Any]] = None

    async def _upcoming(self, now: datetime) -> List[ScheduleOccurrence]:
        return await self.store.list_schedules(
            now, now + timedelta(days=UPCOMING_DAYS), limit=UPCOMING_SCAN_LIMIT
        )

    async def warm_popular_classes(self) -> Dict[str, Any]:
        """Classes with the most confirmed / completed bookings in the last 30 days."""
        try:
            now = self.clock()
            class_ids = await self.store.popular_class_ids(
                now - timedelta(days=POPULAR_LOOKBACK_DAYS), limit=POPULAR_CLASS_LIMIT
            )
            classes = [c for c in await self.store.get_classes(class_ids) if c.is_active is not False]
            cached = 0
            for gym_class in classes:
                key = CacheLayer.generate_key("class", gym_class.id, {"popular": True})
                if await self.cache.set(key, gym_class.summary(), self.popular_ttl):
                    cached += 1
            await self.cache.set(POPULAR_CLASSES_KEY, [c.summary() for c in classes], self.popular_ttl)
        except Exception as e:
            logger.error("[cache_warming] POPULAR_CLASSES_FAILED error=%s", e)
            return {"success": False, "error": str(e)}
        logger.info("[cache_warming] POPULAR_CLASSES cached=%d total=%d", cached, len(classes))
        return {"success": True, "cached": cached, "total": len(classes)}

    async def warm_trainer_schedules(self) -> Dict[str, Any]:
        """Each trainer's SCHEDULED occurrences over the next week."""
        try:
            by_trainer: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
            for s in await self._upcoming(self.clock()):
                if s.trainer is not None and len(by_trainer[s.trainer.id]) < TRAINER_SCHEDULE_LIMIT:
                    by_trainer[s.trainer.id].append(s.summary())
            cached = 0
            for trainer_id, schedules in by_trainer.items():
                key = CacheLayer.generate_key("trainer:schedules", trainer_id, {"upcoming": True})
                if await self.cache.set(key, schedules, self.listing_ttl):
                    cached += 1
        except Exception as e:
            logger.error("[cache_warming] TRAINER_SCHEDULES_FAILED error=%s", e)
            return {"success": False, "error": str(e)}
        logger.info("[cache_warming] TRAINER_SCHEDULES cached=%d total=%d", cached, len(by_trainer))
        return {"success": True, "cached": cached, "total": len(by_trainer)}

    async def warm_upcoming_schedules_by_category(self) -> Dict[str, Any]:
        """Next week's SCHEDULED occurrences grouped by class category."""
        try:
            by_category: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
            for s in await self._upcoming(self.clock()):
                if s.category is not None and len(by_category[s.category.value]) < CATEGORY_SCHEDULE_LIMIT:
                    by_category[s.category.value].append(s.summary())
            cached = 0
            for category, schedules in by_category.items():
                if await self.cache.set(f"schedules:category:{category}", schedules, self.listing_ttl):
                    cached += 1
        except Exception as e:
            logger.error("[cache_warming] CATEGORY_SCHEDULES_FAILED error=%s", e)
            return {"success": False, "error": str(e)}
        logger.info("[cache_warming] CATEGORY_SCHEDULES cached=%d total=%d", cached, len(by_category))
        return {"success": True, "cached": cached, "total": len(by_category)}

    async def run(self) -> Optional[Dict[str, Any]]:
        """One warming pass; returns None when a pass is already in progress."""
        if self.is_running:
            logger.warning("[cache_warming] SKIPPED reason=already_running")
            return None
        self.is_running = True
        started = time.monotonic()
        try:
            results = {
                "popular_classes": await self.warm_popular_classes(),
                "trainer_schedules": await self.warm_trainer_schedules(),
                "schedules_by_category": await self.warm_upcoming_schedules_by_category(),
            }
        finally:
            self.is_running = False
        logger.info("[cache_warming] COMPLETED duration=%.2fs results=%s", time.monotonic() - started, results)
        self.last_results = results
        return results

    async def run_forever(self, initial_delay: float = 30.0, interval: float = 3600.0) -> None:
        """Background loop: wait initial_delay, then run every interval until cancelled."""
        await asyncio.sleep(initial_delay)
        while True:
            try:
                await self.run()
            except Exception as e:
                logger.error("[cache_warming] RUN_FAILED error=%s", e)
            await asyncio.sleep(interval)
