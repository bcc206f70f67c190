"""
Shared Redis client module for CoinView.
Used as the L2 cache layer and, optionally, as the durable state backend.
CRITICAL: Returns None when Redis is unavailable (graceful degradation).
"""
import logging
from typing import Optional

import redis

from .config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


def _create_client() -> redis.Redis:
    pool = redis.ConnectionPool(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        password=settings.REDIS_PASSWORD if settings.REDIS_PASSWORD else None,
        decode_responses=True,
        max_connections=50,
        retry_on_timeout=True,
        health_check_interval=30,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    return redis.Redis(connection_pool=pool)


def get_redis() -> Optional[redis.Redis]:
    """
    Return the shared client, or None when Redis cannot be reached right now.

    Callers treat None as "no L2 cache" and keep working from memory or SQL.
    """
    global _redis_client
    if _redis_client is None:
        try:
            _redis_client = _create_client()
        except redis.RedisError as e:
            logger.error(f"Failed to initialize Redis: {e}", exc_info=True)
            return None

    try:
        _redis_client.ping()
        return _redis_client
    except (redis.ConnectionError, redis.TimeoutError) as e:
        logger.warning(f"Redis connection unavailable: {e}. Redis-backed features will be skipped.")
        return None
    except redis.RedisError as e:
        logger.error(f"Redis error: {e}", exc_info=True)
        return None
