"""
Shared database models for CoinView.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from .database import Base


class PersistedState(Base):
    """Namespaced key-value records that survive restarts (JSON encoded values)."""
    __tablename__ = "persisted_state"

    id = Column(Integer, primary_key=True, autoincrement=True)
    namespace = Column(String(64), nullable=False)
    key = Column(String(128), nullable=False)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("namespace", "key", name="uq_persisted_state_namespace_key"),
    )
