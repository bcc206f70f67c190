"""
Live market updates: change tracking and the polling loop.
"""
from .live_update_tracker import LiveUpdateTracker

__all__ = ["LiveUpdateTracker"]
