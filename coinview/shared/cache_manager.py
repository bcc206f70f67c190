"""
Two-layer response cache for upstream market data.

L1 is a per-process dict, L2 is Redis (shared between processes, optional).
Entries carry the time they were stored; freshness is decided by the caller's
max age on every read, so the same entry can be fresh for one consumer and
stale for another.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import redis

from .redis_client import get_redis

logger = logging.getLogger(__name__)

REDIS_KEY_PREFIX = "coinview:cache"
MAX_L1_ENTRIES = 500


class CacheManager:
    """
    Read-through helper for JSON-serializable upstream payloads.

    Redis errors never reach the caller: a failed L2 read is a miss and a
    failed L2 write leaves only the L1 copy.
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        use_redis: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
        max_entries: int = MAX_L1_ENTRIES,
    ):
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._redis = redis_client
        if self._redis is None and use_redis:
            self._redis = get_redis()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._hits = 0
        self._misses = 0
        self._max_entries = max_entries

    @staticmethod
    def _redis_key(key: str) -> str:
        return f"{REDIS_KEY_PREFIX}:{key}"

    def _is_fresh(self, entry: Dict[str, Any], max_age: int) -> bool:
        stored_at = entry.get("stored_at")
        if not stored_at:
            return False
        age = (self._clock() - datetime.fromisoformat(stored_at)).total_seconds()
        return age <= max_age

    def _remember(self, key: str, entry: Dict[str, Any]) -> None:
        # L1 keeps insertion order; the oldest entry goes once the cap is hit.
        self._entries.pop(key, None)
        self._entries[key] = entry
        while len(self._entries) > self._max_entries:
            del self._entries[next(iter(self._entries))]

    def _read_l2(self, key: str) -> Optional[Dict[str, Any]]:
        if self._redis is None:
            return None
        try:
            raw = self._redis.get(self._redis_key(key))
            return json.loads(raw) if raw else None
        except (redis.RedisError, json.JSONDecodeError) as e:
            logger.warning(f"Cache L2 read failed for {key}: {e}")
            return None

    def get(self, key: str, ttl: int) -> Optional[Any]:
        """
        Return the cached payload if it is at most `ttl` seconds old.

        L1 is consulted first; an L2 hit is copied into L1.
        """
        entry = self._entries.get(key)
        if entry is not None and not self._is_fresh(entry, ttl):
            del self._entries[key]
            entry = None

        if entry is None:
            entry = self._read_l2(key)
            if entry is not None and self._is_fresh(entry, ttl):
                self._remember(key, entry)
            else:
                entry = None

        if entry is None:
            self._misses += 1
            logger.debug(f"Cache miss: {key}")
            return None

        self._hits += 1
        return entry["value"]

    def set(self, key: str, value: Any, ttl: int) -> None:
        """Store a payload in both layers; the Redis copy expires after `ttl` seconds."""
        entry = {"value": value, "stored_at": self._clock().isoformat()}
        self._remember(key, entry)

        if self._redis is not None:
            try:
                self._redis.setex(self._redis_key(key), ttl, json.dumps(entry, default=str))
            except redis.RedisError as e:
                logger.warning(f"Cache L2 write failed for {key}: {e}")

    def invalidate(self, key: str) -> None:
        """Drop a key from both layers."""
        self._entries.pop(key, None)
        if self._redis is not None:
            try:
                self._redis.delete(self._redis_key(key))
            except redis.RedisError as e:
                logger.warning(f"Cache L2 delete failed for {key}: {e}")

    def get_stats(self) -> Dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "l1_size": len(self._entries),
            "l2_available": self._redis is not None,
            "total_hits": self._hits,
            "total_misses": self._misses,
            "hit_rate": round(self._hits / lookups * 100, 2) if lookups else 0.0,
        }
