"""
Filter engine for asset collections.

apply() is pure: no caching across calls, no mutation of its inputs, and the
output keeps the relative order of the input collection.
"""
from typing import AbstractSet, Iterable, List, Optional

from coinview.shared.data_providers.interfaces import Asset
from coinview.shared.numeric import in_range
from .metrics import AssetMetrics, matches_category
from .models import FilterSpec


def matches_search(asset: Asset, query: str) -> bool:
    """Case-insensitive substring match against name, symbol or id."""
    needle = query.strip().lower()
    if not needle:
        return True
    return (
        needle in (asset.name or "").lower()
        or needle in (asset.symbol or "").lower()
        or needle in (asset.id or "").lower()
    )


def matches_spec(
    asset: Asset,
    metrics: AssetMetrics,
    spec: FilterSpec,
    favorites: Optional[AbstractSet[str]] = None,
) -> bool:
    """Evaluate every filter clause (logical AND) for one asset."""
    if not matches_search(asset, spec.search):
        return False

    # Malformed numbers parse to None and fail every range clause.
    if not in_range(metrics.price, spec.price_range):
        return False
    if not in_range(metrics.market_cap, spec.market_cap_range):
        return False
    if not in_range(metrics.change, spec.change_range):
        return False
    if not in_range(metrics.rank, spec.rank_range):
        return False

    if not matches_category(metrics.change, spec.category):
        return False

    if spec.only_favorites and asset.id not in (favorites or frozenset()):
        return False

    return True


def apply(
    assets: Iterable[Asset],
    spec: FilterSpec,
    favorites: Optional[AbstractSet[str]] = None,
) -> List[Asset]:
    """
    Filter an asset collection.

    Args:
        assets: Asset snapshot, in display order
        spec: Filters to apply
        favorites: Favorite asset ids, consulted only when spec.only_favorites is set

    Returns:
        New list with the passing assets, in input order
    """
    return [
        asset for asset in assets
        if matches_spec(asset, AssetMetrics.from_asset(asset), spec, favorites)
    ]
