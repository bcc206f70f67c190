"""
Pydantic models for the Market View Service.
"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from coinview.shared.config import ALLOWED_LIVE_INTERVALS
from coinview.shared.data_providers.interfaces import Asset
from .metrics import MarketCategory

Range = Tuple[float, float]

DEFAULT_PRICE_RANGE: Range = (0, 100_000)
DEFAULT_MARKET_CAP_RANGE: Range = (1_000_000, 2_000_000_000_000)
DEFAULT_CHANGE_RANGE: Range = (-50, 50)
DEFAULT_RANK_RANGE: Range = (1, 100)

RANGE_FIELDS = {
    "price": "price_range",
    "market_cap": "market_cap_range",
    "change": "change_range",
    "rank": "rank_range",
}


class FilterSpec(BaseModel):
    """
    Composable filter over an asset collection.
    An asset passes iff it satisfies every clause; an empty search is a no-op.
    """
    search: str = ""
    price_range: Range = Field(DEFAULT_PRICE_RANGE, alias="priceRange")
    market_cap_range: Range = Field(DEFAULT_MARKET_CAP_RANGE, alias="marketCapRange")
    change_range: Range = Field(DEFAULT_CHANGE_RANGE, alias="changeRange")
    rank_range: Range = Field(DEFAULT_RANK_RANGE, alias="rankRange")
    only_favorites: bool = Field(False, alias="onlyFavorites")
    category: MarketCategory = MarketCategory.ALL

    class Config:
        frozen = True
        populate_by_name = True

    @model_validator(mode="after")
    def check_ranges(self) -> "FilterSpec":
        for name in RANGE_FIELDS.values():
            low, high = getattr(self, name)
            if low > high:
                raise ValueError(f"{name}: min ({low}) must not exceed max ({high})")
        return self

    @property
    def active_count(self) -> int:
        """Number of non-default discrete clauses (search, favorites, category)."""
        count = 0
        if self.search:
            count += 1
        if self.only_favorites:
            count += 1
        if self.category != MarketCategory.ALL:
            count += 1
        return count


# Filter updates: a closed set of variants, each with statically known fields.

class SearchFilterUpdate(BaseModel):
    kind: Literal["search"] = "search"
    query: str = ""


class RangeFilterUpdate(BaseModel):
    kind: Literal["range"] = "range"
    field: Literal["price", "market_cap", "change", "rank"]
    bounds: Range

    @field_validator("bounds")
    @classmethod
    def validate_bounds(cls, v: Range) -> Range:
        if v[0] > v[1]:
            raise ValueError("Range min must not exceed max")
        return v


class CategoryFilterUpdate(BaseModel):
    kind: Literal["category"] = "category"
    category: MarketCategory


class FavoritesFilterUpdate(BaseModel):
    kind: Literal["favorites"] = "favorites"
    only_favorites: bool = Field(alias="onlyFavorites")

    class Config:
        populate_by_name = True


FilterUpdate = Annotated[
    Union[SearchFilterUpdate, RangeFilterUpdate, CategoryFilterUpdate, FavoritesFilterUpdate],
    Field(discriminator="kind"),
]


def apply_filter_update(spec: FilterSpec, update: FilterUpdate) -> FilterSpec:
    """Return a new FilterSpec with one update applied."""
    if isinstance(update, SearchFilterUpdate):
        changes = {"search": update.query}
    elif isinstance(update, RangeFilterUpdate):
        changes = {RANGE_FIELDS[update.field]: update.bounds}
    elif isinstance(update, CategoryFilterUpdate):
        changes = {"category": update.category}
    elif isinstance(update, FavoritesFilterUpdate):
        changes = {"only_favorites": update.only_favorites}
    else:
        raise TypeError(f"Unsupported filter update: {update!r}")
    return spec.model_copy(update=changes)


class Rankings(BaseModel):
    """Three fixed-size leaderboards derived from one snapshot."""
    top_prices: List[Asset] = Field(default_factory=list, alias="topPrices")
    top_volumes: List[Asset] = Field(default_factory=list, alias="topVolumes")
    top_changes: List[Asset] = Field(default_factory=list, alias="topChanges")

    class Config:
        frozen = True
        populate_by_name = True


class LiveStats(BaseModel):
    """Aggregate counts for one snapshot plus the ids currently marked as changed."""
    total_assets: int = Field(0, alias="totalAssets")
    rising: int = 0
    falling: int = 0
    stable: int = 0
    last_update: Optional[datetime] = Field(None, alias="lastUpdate")
    changed_asset_ids: List[str] = Field(default_factory=list, alias="changedAssetIds")

    class Config:
        frozen = True
        populate_by_name = True


class LiveUpdateConfig(BaseModel):
    """Polling configuration: on/off, interval and whether to poll in the background."""
    enabled: bool = True
    interval: int = 30  # seconds
    background_updates: bool = Field(True, alias="backgroundUpdates")

    class Config:
        populate_by_name = True

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        if v not in ALLOWED_LIVE_INTERVALS:
            raise ValueError(
                f"interval must be one of: {', '.join(str(i) for i in ALLOWED_LIVE_INTERVALS)}"
            )
        return v


class LiveUpdateConfigPatch(BaseModel):
    """Partial update of LiveUpdateConfig."""
    enabled: Optional[bool] = None
    interval: Optional[int] = None
    background_updates: Optional[bool] = Field(None, alias="backgroundUpdates")

    class Config:
        populate_by_name = True


class FilteredAssetsResponse(BaseModel):
    """Response model for the filtered asset list."""
    assets: List[Asset]
    total: int
    filters: FilterSpec
    active_filters: int = Field(alias="activeFilters")
    last_update: Optional[datetime] = Field(None, alias="lastUpdate")
    is_stale: bool = Field(alias="isStale")

    class Config:
        populate_by_name = True
