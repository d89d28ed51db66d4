"""
Metrics Collector

Aggregates per-class attendance / booking / rating history from the gym store.
The popularity and recency formulas themselves live in recommender.models.scoring.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Sequence

from recommender.models.scoring import ClassMetrics

from .gym_store import GymStore

logger = logging.getLogger(__name__)


class MetricsCollector:
    """Collects ClassMetrics for many classes concurrently, each under the DB timeout."""

    def __init__(self, store: GymStore, timeout: float = 5.0):
        self.store = store
        self.timeout = timeout

    async def collect_one(self, class_id: str, now: datetime) -> ClassMetrics:
        """Metrics for one class; timeouts and store errors give neutral metrics."""
        try:
            return await asyncio.wait_for(self.store.class_metrics(class_id, now), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("[metrics] TIMEOUT class_id=%s timeout=%.1fs", class_id, self.timeout)
        except Exception as e:
            logger.warning("[metrics] FAILED class_id=%s error=%s", class_id, e)
        return ClassMetrics(class_id=class_id)

    async def collect(self, class_ids: Sequence[str], now: datetime) -> Dict[str, ClassMetrics]:
        unique = list(dict.fromkeys(class_ids))
        results = await asyncio.gather(*(self.collect_one(cid, now) for cid in unique))
        return {m.class_id: m for m in results}
