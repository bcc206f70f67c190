"""
Parsed numeric view of an Asset plus the change-category definitions.

The rising/falling/stable buckets are defined once here and shared by the
filter engine and the live update tracker.
"""
from decimal import Decimal
from enum import Enum
from typing import NamedTuple, Optional

from coinview.shared.data_providers.interfaces import Asset
from coinview.shared.numeric import parse_decimal

# A 24h change within +/- this many percent counts as stable.
STABLE_CHANGE_THRESHOLD = Decimal("1")


class MarketCategory(str, Enum):
    """Categorical bucket of 24h percentage change."""
    ALL = "all"
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


def matches_category(change: Optional[Decimal], category: MarketCategory) -> bool:
    """
    Check a parsed 24h change against a category.
    `all` accepts everything, including a malformed change; the other
    buckets reject a malformed change. Buckets overlap: +0.5 is both rising
    and stable.
    """
    category = MarketCategory(category)
    if category == MarketCategory.ALL:
        return True
    if change is None:
        return False
    if category == MarketCategory.RISING:
        return change > 0
    if category == MarketCategory.FALLING:
        return change < 0
    return -STABLE_CHANGE_THRESHOLD <= change <= STABLE_CHANGE_THRESHOLD


class AssetMetrics(NamedTuple):
    """Numeric fields of one asset, parsed once. None marks a malformed field."""
    price: Optional[Decimal]
    market_cap: Optional[Decimal]
    volume: Optional[Decimal]
    change: Optional[Decimal]
    rank: Optional[Decimal]

    @classmethod
    def from_asset(cls, asset: Asset) -> "AssetMetrics":
        return cls(
            price=_non_negative(parse_decimal(asset.price_usd, "priceUsd")),
            market_cap=_non_negative(parse_decimal(asset.market_cap_usd, "marketCapUsd")),
            volume=_non_negative(parse_decimal(asset.volume_usd_24hr, "volumeUsd24Hr")),
            change=parse_decimal(asset.change_percent_24hr, "changePercent24Hr"),
            rank=parse_decimal(asset.rank, "rank"),
        )


def _non_negative(value: Optional[Decimal]) -> Optional[Decimal]:
    # Price, market cap and volume are never negative; a negative reading is malformed.
    if value is None or value < 0:
        return None
    return value
