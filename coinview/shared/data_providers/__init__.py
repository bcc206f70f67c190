"""
Market data providers.
"""
from .interfaces import Asset, AssetHistoryPoint, AssetRepository, HistoryInterval
from .coincap_provider import CoinCapAssetRepository

__all__ = [
    "Asset",
    "AssetHistoryPoint",
    "AssetRepository",
    "HistoryInterval",
    "CoinCapAssetRepository",
]
