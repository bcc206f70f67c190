"""
CoinCap Asset Data Provider.
Implements AssetRepository on top of the CoinCap REST API.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from ..cache_manager import CacheManager
from ..config import settings
from ..exceptions import NetworkError
from .interfaces import Asset, AssetHistoryPoint, AssetRepository, HistoryInterval

logger = logging.getLogger(__name__)


class CoinCapAssetRepository(AssetRepository):
    """
    CoinCap implementation of AssetRepository.

    Every request is retried with exponential backoff; once the attempts are
    exhausted the failure surfaces as NetworkError. Single-asset lookups and
    searches are served from the cache while fresh.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[CacheManager] = None,
        base_url: Optional[str] = None,
        retry_attempts: Optional[int] = None,
        retry_max_delay: Optional[float] = None,
        stale_time: Optional[int] = None,
    ):
        self.base_url = (base_url or settings.COINCAP_BASE_URL).rstrip("/")
        headers = {"Accept": "application/json"}
        if settings.COINCAP_API_KEY:
            headers["Authorization"] = f"Bearer {settings.COINCAP_API_KEY}"
        self.client = client or httpx.AsyncClient(
            timeout=settings.REQUEST_TIMEOUT,
            headers=headers,
        )
        self.cache = cache
        self.retry_attempts = settings.RETRY_ATTEMPTS if retry_attempts is None else retry_attempts
        self.retry_max_delay = settings.RETRY_MAX_DELAY if retry_max_delay is None else retry_max_delay
        self.stale_time = settings.STALE_TIME if stale_time is None else stale_time

    def _retry_delay(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (0-based): 1s, 2s, 4s ... capped."""
        return min(1.0 * (2 ** attempt), self.retry_max_delay)

    async def _request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET a path and return the decoded JSON body, retrying transient failures."""
        url = f"{self.base_url}{path}"
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        last_error: Optional[NetworkError] = None

        for attempt in range(self.retry_attempts + 1):
            try:
                response = await self.client.get(url, params=clean_params)
                response.raise_for_status()
                body = response.json()
                if not isinstance(body, dict) or "data" not in body:
                    raise NetworkError(
                        f"Malformed response from {path}",
                        status=response.status_code,
                        code="MALFORMED_BODY",
                    )
                return body
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                last_error = NetworkError(f"HTTP {status} from {path}", status=status, code="HTTP_ERROR")
                if 400 <= status < 500 and status != 429:
                    # Client errors are not transient
                    break
            except httpx.HTTPError as e:
                last_error = NetworkError(f"Network error on {path}: {e}", code="NETWORK_ERROR")
            except ValueError as e:
                last_error = NetworkError(f"Invalid JSON from {path}: {e}", code="MALFORMED_BODY")
            except NetworkError as e:
                last_error = e

            if attempt < self.retry_attempts:
                delay = self._retry_delay(attempt)
                logger.warning(f"CoinCap request {path} failed ({last_error}); retrying in {delay}s")
                await asyncio.sleep(delay)

        logger.error(f"CoinCap request {path} failed after retries: {last_error}")
        raise last_error

    @staticmethod
    def _parse_assets(items: Any, path: str) -> List[Asset]:
        if not isinstance(items, list):
            raise NetworkError(f"Expected a list of assets from {path}", code="MALFORMED_BODY")
        assets = []
        for item in items:
            try:
                assets.append(Asset.model_validate(item))
            except ValidationError as e:
                # One bad record should not hide the rest of the snapshot
                logger.warning(f"Skipping malformed asset record from {path}: {e.error_count()} errors")
        return assets

    async def get_assets(
        self,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
        use_cache: bool = True,
    ) -> List[Asset]:
        """Get a page of assets ordered by rank."""
        cache_key = f"assets:list:{search or ''}:{limit}:{offset}"
        if use_cache and self.cache:
            cached = self.cache.get(cache_key, ttl=self.stale_time)
            if cached is not None:
                return [Asset.model_validate(item) for item in cached]

        body = await self._request("/assets", {"search": search, "limit": limit, "offset": offset})
        assets = self._parse_assets(body["data"], "/assets")

        if self.cache:
            self.cache.set(cache_key, [asset.to_wire() for asset in assets], ttl=self.stale_time)
        return assets

    async def get_asset(self, asset_id: str) -> Asset:
        """Get a single asset by id."""
        cache_key = f"assets:one:{asset_id}"
        if self.cache:
            cached = self.cache.get(cache_key, ttl=self.stale_time)
            if cached is not None:
                return Asset.model_validate(cached)

        body = await self._request(f"/assets/{asset_id}")
        try:
            asset = Asset.model_validate(body["data"])
        except ValidationError as e:
            raise NetworkError(f"Malformed asset '{asset_id}': {e.error_count()} errors", code="MALFORMED_BODY")

        if self.cache:
            self.cache.set(cache_key, asset.to_wire(), ttl=self.stale_time)
        return asset

    async def get_asset_history(
        self,
        asset_id: str,
        interval: HistoryInterval = HistoryInterval.HOUR_1,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> List[AssetHistoryPoint]:
        """Get price history for an asset."""
        body = await self._request(
            f"/assets/{asset_id}/history",
            {"interval": HistoryInterval(interval).value, "start": start, "end": end},
        )
        items = body["data"]
        if not isinstance(items, list):
            raise NetworkError(f"Expected a list of history points for '{asset_id}'", code="MALFORMED_BODY")
        try:
            return [AssetHistoryPoint.model_validate(item) for item in items]
        except ValidationError as e:
            raise NetworkError(f"Malformed history for '{asset_id}': {e.error_count()} errors", code="MALFORMED_BODY")

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
