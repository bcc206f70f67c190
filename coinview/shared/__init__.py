"""
Shared modules for CoinView services.
"""
from .config import settings
from .database import Base, get_db_context
from .redis_client import get_redis

__all__ = [
    "settings",
    "Base",
    "get_db_context",
    "get_redis",
]
