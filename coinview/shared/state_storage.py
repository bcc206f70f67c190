"""
Durable key-value persistence for CoinView.

Preferences and simulation history are stored as JSON documents under a
(namespace, key) pair. Two backends are available: SQL through SQLAlchemy
(default) and Redis.
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import redis
from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db_context
from .exceptions import StorageError
from .models import PersistedState
from .redis_client import get_redis

logger = logging.getLogger(__name__)

UI_NAMESPACE = "ui"
SIMULATION_NAMESPACE = "simulation"


class StateStorage(ABC):
    """Interface for durable namespaced key-value storage."""

    @abstractmethod
    def load(self, namespace: str, key: str, default: Any = None) -> Any:
        """Load a value, returning default when the key was never saved."""
        pass

    @abstractmethod
    def save(self, namespace: str, key: str, value: Any) -> None:
        """Persist a JSON-serializable value."""
        pass

    @abstractmethod
    def delete(self, namespace: str, key: str) -> None:
        """Remove a value if present."""
        pass


class SqlStateStorage(StateStorage):
    """SQLAlchemy-backed storage (persisted_state table)."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory

    def load(self, namespace: str, key: str, default: Any = None) -> Any:
        try:
            with get_db_context(self._session_factory) as db:
                row = db.execute(
                    select(PersistedState).where(
                        PersistedState.namespace == namespace,
                        PersistedState.key == key,
                    )
                ).scalar_one_or_none()
                if row is None:
                    return default
                return json.loads(row.value)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load {namespace}:{key}: {e}") from e
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding corrupt state for {namespace}:{key}: {e}")
            return default

    def save(self, namespace: str, key: str, value: Any) -> None:
        payload = json.dumps(value, default=str)
        try:
            with get_db_context(self._session_factory) as db:
                row = db.execute(
                    select(PersistedState).where(
                        PersistedState.namespace == namespace,
                        PersistedState.key == key,
                    )
                ).scalar_one_or_none()
                if row is None:
                    db.add(PersistedState(namespace=namespace, key=key, value=payload))
                else:
                    row.value = payload
                db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save {namespace}:{key}: {e}") from e

    def delete(self, namespace: str, key: str) -> None:
        try:
            with get_db_context(self._session_factory) as db:
                db.execute(
                    delete(PersistedState).where(
                        PersistedState.namespace == namespace,
                        PersistedState.key == key,
                    )
                )
                db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete {namespace}:{key}: {e}") from e


class RedisStateStorage(StateStorage):
    """Redis-backed storage. Keys never expire."""

    KEY_PREFIX = "coinview"

    def __init__(self, client: redis.Redis):
        self.redis = client

    def _key(self, namespace: str, key: str) -> str:
        return f"{self.KEY_PREFIX}:{namespace}:{key}"

    def load(self, namespace: str, key: str, default: Any = None) -> Any:
        try:
            data = self.redis.get(self._key(namespace, key))
        except redis.RedisError as e:
            raise StorageError(f"Failed to load {namespace}:{key}: {e}") from e
        if data is None:
            return default
        try:
            return json.loads(data)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding corrupt state for {namespace}:{key}: {e}")
            return default

    def save(self, namespace: str, key: str, value: Any) -> None:
        try:
            self.redis.set(self._key(namespace, key), json.dumps(value, default=str))
        except redis.RedisError as e:
            raise StorageError(f"Failed to save {namespace}:{key}: {e}") from e

    def delete(self, namespace: str, key: str) -> None:
        try:
            self.redis.delete(self._key(namespace, key))
        except redis.RedisError as e:
            raise StorageError(f"Failed to delete {namespace}:{key}: {e}") from e


def get_state_storage() -> StateStorage:
    """
    Build the configured storage backend.
    A redis backend that cannot be reached falls back to SQL.
    """
    if settings.STATE_BACKEND == "redis":
        client = get_redis()
        if client is not None:
            logger.info("Using Redis state storage")
            return RedisStateStorage(client)
        logger.warning("Redis state storage unavailable, falling back to SQL storage")
    return SqlStateStorage()
