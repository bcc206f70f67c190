"""
Top-N leaderboards for an asset snapshot.

Three independent descending sorts on price, 24h volume and absolute 24h
change. Python's sort is stable, so equal keys keep their input order. An
asset whose key is malformed sorts after every well-formed one.
"""
from decimal import Decimal
from typing import Callable, List, Optional, Sequence, Tuple

from coinview.shared.data_providers.interfaces import Asset
from .metrics import AssetMetrics
from .models import Rankings

TOP_N = 5


def _descending_key(value: Optional[Decimal]) -> Tuple[int, Decimal]:
    # Sort ascending on this key: well-formed values first, largest first.
    if value is None:
        return (1, Decimal(0))
    return (0, -value)


def top_by(
    assets: Sequence[Asset],
    metrics: Sequence[AssetMetrics],
    key: Callable[[AssetMetrics], Optional[Decimal]],
    limit: int = TOP_N,
) -> List[Asset]:
    """Return up to `limit` assets sorted descending by `key`, ties in input order."""
    order = sorted(range(len(assets)), key=lambda i: _descending_key(key(metrics[i])))
    return [assets[i] for i in order[:limit]]


def _abs_change(m: AssetMetrics) -> Optional[Decimal]:
    return abs(m.change) if m.change is not None else None


def generate(assets: Sequence[Asset], limit: int = TOP_N) -> Rankings:
    """
    Build the three leaderboards for a snapshot.
    Each list holds min(len(assets), limit) entries, never padded.
    """
    assets = list(assets)
    metrics = [AssetMetrics.from_asset(asset) for asset in assets]
    return Rankings(
        top_prices=top_by(assets, metrics, lambda m: m.price, limit),
        top_volumes=top_by(assets, metrics, lambda m: m.volume, limit),
        top_changes=top_by(assets, metrics, _abs_change, limit),
    )
