"""Background jobs."""

from .cache_warming import CacheWarmingJob

__all__ = ["CacheWarmingJob"]
