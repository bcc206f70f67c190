"""
Asset data provider interfaces.
The market data source is an external collaborator; the core only consumes
resolved Asset snapshots through this read-only contract.
"""
from abc import ABC, abstractmethod
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field


class HistoryInterval(str, Enum):
    """Point-in-time history granularity."""
    MINUTE_1 = "m1"
    MINUTE_5 = "m5"
    MINUTE_15 = "m15"
    MINUTE_30 = "m30"
    HOUR_1 = "h1"
    HOUR_2 = "h2"
    HOUR_6 = "h6"
    HOUR_12 = "h12"
    DAY_1 = "d1"


class Asset(BaseModel):
    """
    One tradable cryptocurrency and its latest market snapshot.

    Numeric fields keep the upstream decimal-string form; parse them with
    coinview.shared.numeric before doing arithmetic. Instances are frozen, a
    new fetch always produces new objects.
    """
    id: str
    rank: Optional[str] = None
    symbol: str
    name: str
    supply: Optional[str] = None
    max_supply: Optional[str] = Field(None, alias="maxSupply")
    market_cap_usd: Optional[str] = Field(None, alias="marketCapUsd")
    volume_usd_24hr: Optional[str] = Field(None, alias="volumeUsd24Hr")
    price_usd: Optional[str] = Field(None, alias="priceUsd")
    change_percent_24hr: Optional[str] = Field(None, alias="changePercent24Hr")
    vwap_24hr: Optional[str] = Field(None, alias="vwap24Hr")
    explorer: Optional[str] = None

    class Config:
        frozen = True
        populate_by_name = True
        extra = "ignore"
        coerce_numbers_to_str = True

    def to_wire(self) -> dict:
        """Serialize back to the upstream camelCase shape."""
        return self.model_dump(by_alias=True)


class AssetHistoryPoint(BaseModel):
    """One point of an asset's price history."""
    price_usd: Optional[str] = Field(None, alias="priceUsd")
    time: int  # ms since epoch
    date: Optional[str] = None

    class Config:
        frozen = True
        populate_by_name = True
        extra = "ignore"
        coerce_numbers_to_str = True


class AssetRepository(ABC):
    """Interface for market asset providers."""

    @abstractmethod
    async def get_assets(
        self,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
        use_cache: bool = True,
    ) -> List[Asset]:
        """Get a page of assets ordered by rank."""
        pass

    @abstractmethod
    async def get_asset(self, asset_id: str) -> Asset:
        """Get a single asset by id."""
        pass

    @abstractmethod
    async def get_asset_history(
        self,
        asset_id: str,
        interval: HistoryInterval = HistoryInterval.HOUR_1,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> List[AssetHistoryPoint]:
        """Get price history for an asset."""
        pass

    async def search_assets(self, query: str) -> List[Asset]:
        """Search assets by name or symbol. A blank query returns nothing."""
        if not query.strip():
            return []
        return await self.get_assets(search=query.strip(), limit=20)

    async def get_top_assets(self, limit: int = 10) -> List[Asset]:
        """Get top assets by rank."""
        return await self.get_assets(limit=limit)

    async def close(self) -> None:
        """Release network resources."""
        return None
