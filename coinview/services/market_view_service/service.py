"""
Main business logic service for the Market View.
Turns raw asset snapshots into the derived views (filtered list, rankings,
live stats) and swaps them in atomically.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from coinview.shared.config import settings
from coinview.shared.data_providers.interfaces import Asset
from coinview.realtime.live_update_tracker import LiveUpdateTracker
from . import filter_engine, ranking
from .models import FilterSpec, LiveStats, Rankings
from .preferences import DashboardPreferences

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketView:
    """Everything derived from one snapshot. Replaced as a whole, never patched."""
    assets: Tuple[Asset, ...] = ()
    rankings: Rankings = field(default_factory=Rankings)
    live_stats: LiveStats = field(default_factory=LiveStats)
    fetched_at: Optional[datetime] = None
    fetch_failed: bool = False


class MarketViewService:
    """Owns the current market view and the memoized filtered list."""

    def __init__(
        self,
        preferences: DashboardPreferences,
        tracker: Optional[LiveUpdateTracker] = None,
        stale_after: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.preferences = preferences
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.tracker = tracker or LiveUpdateTracker(
            window_seconds=preferences.live_config.interval, clock=self._clock
        )
        self.stale_after = settings.CACHE_TIME if stale_after is None else stale_after
        self._view = MarketView()
        self._filter_memo: Optional[Tuple[tuple, List[Asset]]] = None

    @property
    def view(self) -> MarketView:
        return self._view

    @property
    def assets(self) -> Tuple[Asset, ...]:
        return self._view.assets

    def apply_snapshot(self, assets: Iterable[Asset]) -> MarketView:
        """
        Recompute every derived view from a fresh snapshot.
        The new MarketView is built completely before it replaces the old one.
        """
        snapshot = tuple(assets)
        rankings = ranking.generate(snapshot)
        live_stats = self.tracker.update(snapshot)
        self._view = MarketView(
            assets=snapshot,
            rankings=rankings,
            live_stats=live_stats,
            fetched_at=self._clock(),
        )
        self._filter_memo = None
        logger.info(f"Market snapshot applied: {len(snapshot)} assets")
        return self._view

    def mark_fetch_failed(self) -> None:
        """Keep the last known values but flag them as stale."""
        if not self._view.fetch_failed:
            self._view = replace(self._view, fetch_failed=True)

    def is_stale(self) -> bool:
        """True before the first snapshot, after a failed fetch, or once data is too old."""
        if self._view.fetched_at is None or self._view.fetch_failed:
            return True
        age = (self._clock() - self._view.fetched_at).total_seconds()
        return age > self.stale_after

    def filtered(self, spec: Optional[FilterSpec] = None) -> List[Asset]:
        """
        Filtered view of the current snapshot.
        Memoized on (snapshot identity, spec, favorites when relevant).
        """
        spec = spec or self.preferences.filters
        favorites = self.preferences.favorite_set if spec.only_favorites else None
        key = (id(self._view.assets), spec, favorites)
        if self._filter_memo is not None and self._filter_memo[0] == key:
            return list(self._filter_memo[1])

        result = filter_engine.apply(self._view.assets, spec, favorites)
        self._filter_memo = (key, result)
        return list(result)

    def clear_changes(self) -> LiveStats:
        """Acknowledge all change highlights."""
        stats = self.tracker.clear_changed()
        self._view = replace(self._view, live_stats=stats)
        return stats

    def find_assets(self, asset_ids: Iterable[str]) -> Tuple[List[Asset], List[str]]:
        """
        Resolve ids against the current snapshot.

        Returns:
            (found assets in requested order, ids that are not in the snapshot)
        """
        by_id: Dict[str, Asset] = {asset.id: asset for asset in self._view.assets}
        found, missing = [], []
        for asset_id in asset_ids:
            if asset_id in by_id:
                found.append(by_id[asset_id])
            else:
                missing.append(asset_id)
        return found, missing
