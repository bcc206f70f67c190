"""
Market View Service
Pure filter and ranking functions over asset snapshots.
"""
from .filter_engine import apply
from .ranking import generate
from .models import FilterSpec, Rankings, LiveStats

__all__ = [
    "apply",
    "generate",
    "FilterSpec",
    "Rankings",
    "LiveStats",
]
