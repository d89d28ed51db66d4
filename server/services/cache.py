"""
Cache Layer

JSON key-value cache with explicit TTLs and pattern-based invalidation in front
of the expensive recommendation paths. Backends: Redis (redis.asyncio) and an
in-memory store with an injectable clock (tests, local runs without Redis).

Every backend call is bounded by the cache timeout. Failures are logged and
treated as a miss (reads) or a no-op (writes); the cache never fails a request.
Writes are shielded so an abandoned request still populates the cache.

Usage:
    cache = CacheLayer(RedisCacheBackend("redis://localhost:6379"))
    key = CacheLayer.recommendation_key("m-1", {"useVector": True, "useAI": False})
    data = await cache.get(key)
"""

import asyncio
import fnmatch
import json
import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600
LISTING_TTL_SECONDS = 1800

# Only these request params take part in recommendation cache keys, with their defaults
RECOMMENDATION_KEY_PARAMS: Dict[str, bool] = {"useAI": False, "useVector": True}

# Categories of the member's recent recommendations (diversity input)
RECENT_CATEGORIES_TTL_SECONDS = 7 * 24 * 3600


class CacheBackend(Protocol):
    """GET / SETEX / DEL / KEYS, the subset of Redis the cache layer needs."""

    name: str

    async def get(self, key: str) -> Optional[str]:
        ...

    async def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        ...

    async def delete(self, *keys: str) -> int:
        ...

    async def keys(self, pattern: str) -> List[str]:
        ...

    async def close(self) -> None:
        ...


class RedisCacheBackend:
    """redis.asyncio client; decode_responses so values round-trip as str."""

    name = "redis"

    def __init__(self, url: str, client: Optional[Redis] = None):
        self.url = url
        self.client = client or Redis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        await self.client.setex(key, ttl_seconds, value)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self.client.delete(*keys)

    async def keys(self, pattern: str) -> List[str]:
        return list(await self.client.keys(pattern))

    async def close(self) -> None:
        await self.client.aclose()


class InMemoryCacheBackend:
    """
    Dict-backed cache honouring TTLs against an injectable clock.

    clock returns seconds (monotonic by default); tests pass a fake to expire entries.
    """

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[str, float]] = {}

    def _live(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def get(self, key: str) -> Optional[str]:
        return self._live(key)

    async def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        self._data[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                removed += 1
            self._data.pop(key, None)
        return removed

    async def keys(self, pattern: str) -> List[str]:
        return [k for k in list(self._data) if self._live(k) is not None and fnmatch.fnmatchcase(k, pattern)]

    async def close(self) -> None:
        self._data.clear()


def _param_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class CacheLayer:
    """JSON serialisation, key derivation and failure absorption over a CacheBackend."""

    def __init__(
        self,
        backend: CacheBackend,
        timeout: float = 2.0,
        default_ttl: int = DEFAULT_TTL_SECONDS,
    ):
        self.backend = backend
        self.timeout = timeout
        self.default_ttl = default_ttl

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @staticmethod
    def generate_key(prefix: str, identifier: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """
        prefix:identifier[:k1:v1|k2:v2...] with params sorted by key.

        A pure function of its inputs; dict insertion order does not matter.
        """
        parts = [prefix, str(identifier)]
        if params:
            parts.append("|".join(f"{k}:{_param_value(v)}" for k, v in sorted(params.items())))
        return ":".join(parts)

    @classmethod
    def recommendation_key(cls, member_id: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Key for a recommendation request; only whitelisted params count, defaults filled in."""
        params = params or {}
        whitelisted = {
            name: params[name] if params.get(name) is not None else default
            for name, default in RECOMMENDATION_KEY_PARAMS.items()
        }
        return cls.generate_key("recommendations", member_id, whitelisted)

    @staticmethod
    def member_pattern(member_id: str) -> str:
        return f"recommendations:{member_id}:*"

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Optional[Any]:
        """Decoded value, or None on miss / timeout / backend error."""
        try:
            raw = await asyncio.wait_for(self.backend.get(key), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("[cache] GET_TIMEOUT key=%s", key)
            return None
        except Exception as e:
            logger.warning("[cache] GET_FAILED key=%s error=%s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("[cache] DECODE_FAILED key=%s error=%s", key, e)
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store JSON-serialisable value with TTL; True on success."""
        try:
            payload = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            logger.error("[cache] ENCODE_FAILED key=%s error=%s", key, e)
            return False
        write = asyncio.ensure_future(
            asyncio.wait_for(self.backend.setex(key, ttl or self.default_ttl, payload), timeout=self.timeout)
        )
        try:
            await asyncio.shield(write)
            return True
        except asyncio.TimeoutError:
            logger.warning("[cache] SET_TIMEOUT key=%s", key)
        except asyncio.CancelledError:
            # Caller went away; the shielded write keeps running
            raise
        except Exception as e:
            logger.warning("[cache] SET_FAILED key=%s error=%s", key, e)
        return False

    async def delete(self, key: str) -> bool:
        try:
            await asyncio.wait_for(self.backend.delete(key), timeout=self.timeout)
            return True
        except Exception as e:
            logger.warning("[cache] DELETE_FAILED key=%s error=%s", key, e)
            return False

    async def delete_by_pattern(self, pattern: str) -> int:
        """KEYS pattern then DEL; returns how many keys were removed (0 on failure)."""
        try:
            keys = await asyncio.wait_for(self.backend.keys(pattern), timeout=self.timeout)
            if not keys:
                return 0
            return await asyncio.wait_for(self.backend.delete(*keys), timeout=self.timeout)
        except Exception as e:
            logger.warning("[cache] DELETE_PATTERN_FAILED pattern=%s error=%s", pattern, e)
            return 0

    async def invalidate_member(self, member_id: str) -> int:
        """Drop every cached recommendation variant for a member."""
        removed = await self.delete_by_pattern(self.member_pattern(member_id))
        logger.info("[cache] MEMBER_INVALIDATED member_id=%s removed=%d", member_id, removed)
        return removed

    # ------------------------------------------------------------------
    # Recent recommendation categories
    # ------------------------------------------------------------------

    @staticmethod
    def recent_categories_key(member_id: str) -> str:
        return f"recommendation_history:{member_id}"

    async def recent_categories(self, member_id: str) -> List[str]:
        value = await self.get(self.recent_categories_key(member_id))
        return [str(c) for c in value] if isinstance(value, list) else []

    async def remember_categories(self, member_id: str, categories: List[str], window: int) -> None:
        """Prepend the latest recommended categories, keeping the newest `window`."""
        previous = await self.recent_categories(member_id)
        await self.set(
            self.recent_categories_key(member_id),
            (list(categories) + previous)[:window],
            RECENT_CATEGORIES_TTL_SECONDS,
        )

    async def close(self) -> None:
        await self.backend.close()
