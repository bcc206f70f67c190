"""
Live Update Tracker
Detects which assets changed between consecutive snapshots and aggregates
rising/falling/stable counts for the newest snapshot.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, Iterable, Optional, Tuple, Union

from coinview.shared.config import settings
from coinview.shared.data_providers.interfaces import Asset
from coinview.services.market_view_service.metrics import (
    AssetMetrics,
    MarketCategory,
    matches_category,
)
from coinview.services.market_view_service.models import LiveStats

logger = logging.getLogger(__name__)

# Parsed value, or the raw string when the field is malformed
_FieldPrint = Union[Decimal, str, None]


def _fingerprint(asset: Asset, metrics: AssetMetrics) -> Tuple[_FieldPrint, _FieldPrint]:
    price = metrics.price if metrics.price is not None else asset.price_usd
    change = metrics.change if metrics.change is not None else asset.change_percent_24hr
    return (price, change)


class LiveUpdateTracker:
    """
    Tracks recently changed asset ids across snapshots.

    State is the previous snapshot's (price, change) per id and a map of
    id -> time of the last detected change. Marks older than the window are
    pruned at the start of the next cycle, so the map stays bounded by the
    snapshot size.
    """

    def __init__(
        self,
        window_seconds: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.window = timedelta(seconds=settings.LIVE_UPDATE_INTERVAL if window_seconds is None else window_seconds)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._previous: Optional[Dict[str, Tuple[_FieldPrint, _FieldPrint]]] = None
        self._changed: Dict[str, datetime] = {}
        self._stats = LiveStats()

    @property
    def stats(self) -> LiveStats:
        return self._stats

    @property
    def changed_assets(self) -> Dict[str, datetime]:
        """Copy of the id -> last-changed timestamp map."""
        return dict(self._changed)

    def is_changed(self, asset_id: str) -> bool:
        return asset_id in self._changed

    def set_window(self, window_seconds: float) -> None:
        """Change the pruning window (follows the polling interval)."""
        self.window = timedelta(seconds=window_seconds)

    def _prune(self, now: datetime) -> None:
        expired = [asset_id for asset_id, ts in self._changed.items() if now - ts > self.window]
        for asset_id in expired:
            del self._changed[asset_id]

    def update(self, assets: Iterable[Asset]) -> LiveStats:
        """
        Compare a new snapshot with the previous one and recompute stats.

        An id counts as changed when its price or 24h change differs from
        the previous snapshot. Ids absent from the previous snapshot (and
        everything on the first run) have no baseline and are not marked.
        """
        now = self._clock()
        self._prune(now)

        current: Dict[str, Tuple[_FieldPrint, _FieldPrint]] = {}
        total = rising = falling = stable = 0
        for asset in assets:
            metrics = AssetMetrics.from_asset(asset)
            current[asset.id] = _fingerprint(asset, metrics)
            total += 1

            if matches_category(metrics.change, MarketCategory.RISING):
                rising += 1
            if matches_category(metrics.change, MarketCategory.FALLING):
                falling += 1
            if matches_category(metrics.change, MarketCategory.STABLE):
                stable += 1

        if self._previous is not None:
            for asset_id, print_ in current.items():
                previous = self._previous.get(asset_id)
                if previous is not None and previous != print_:
                    # Re-insert so the map stays ordered by recency
                    self._changed.pop(asset_id, None)
                    self._changed[asset_id] = now

        self._previous = current
        self._stats = LiveStats(
            total_assets=total,
            rising=rising,
            falling=falling,
            stable=stable,
            last_update=now,
            changed_asset_ids=list(self._changed),
        )
        logger.debug(
            f"Live stats updated: {total} assets, {len(self._changed)} recently changed"
        )
        return self._stats

    def clear_changed(self) -> LiveStats:
        """Drop every change marker; aggregate counts stay as they are."""
        self._changed.clear()
        self._stats = self._stats.model_copy(update={"changed_asset_ids": []})
        return self._stats

    def reset(self) -> None:
        """Forget the previous snapshot, the markers and the stats."""
        self._previous = None
        self._changed.clear()
        self._stats = LiveStats()
