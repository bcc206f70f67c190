"""
Unit tests for the CoinCap asset repository.
"""
import httpx
import pytest

from coinview.shared.cache_manager import CacheManager
from coinview.shared.data_providers import coincap_provider
from coinview.shared.data_providers.coincap_provider import CoinCapAssetRepository
from coinview.shared.exceptions import NetworkError

BTC = {
    "id": "bitcoin", "rank": "1", "symbol": "BTC", "name": "Bitcoin",
    "supply": "19700000", "maxSupply": "21000000",
    "marketCapUsd": "1260000000000", "volumeUsd24Hr": "25000000000",
    "priceUsd": "64000.50", "changePercent24Hr": "2.5", "vwap24Hr": "63800",
    "explorer": "https://blockchain.info/",
}
ETH = dict(BTC, id="ethereum", rank="2", symbol="ETH", name="Ethereum", priceUsd="3100")


@pytest.fixture
def sleeps(monkeypatch):
    """Record backoff delays instead of sleeping."""
    recorded = []

    async def fake_sleep(delay):
        recorded.append(delay)

    monkeypatch.setattr(coincap_provider.asyncio, "sleep", fake_sleep)
    return recorded


def make_repository(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("retry_attempts", 3)
    kwargs.setdefault("retry_max_delay", 30)
    return CoinCapAssetRepository(client=client, base_url="https://coincap.test/v2", **kwargs)


@pytest.mark.unit
class TestCoinCapAssetRepository:

    @pytest.mark.asyncio
    async def test_get_assets_parses_snapshot(self, sleeps):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"data": [BTC, ETH], "timestamp": 1717243200000})

        repository = make_repository(handler)
        assets = await repository.get_assets(limit=2)

        assert [a.id for a in assets] == ["bitcoin", "ethereum"]
        assert assets[0].price_usd == "64000.50"
        assert seen[0].url.params["limit"] == "2"
        assert "search" not in seen[0].url.params
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_numbers_are_kept_as_strings(self, sleeps):
        def handler(request):
            return httpx.Response(200, json={"data": [dict(BTC, priceUsd=64000.5, rank=1)]})

        assets = await make_repository(handler).get_assets()
        assert assets[0].price_usd == "64000.5"
        assert assets[0].rank == "1"

    @pytest.mark.asyncio
    async def test_malformed_records_are_skipped(self, sleeps):
        def handler(request):
            return httpx.Response(200, json={"data": [BTC, {"rank": "2"}]})

        assets = await make_repository(handler).get_assets()
        assert [a.id for a in assets] == ["bitcoin"]

    @pytest.mark.asyncio
    async def test_retries_with_exponential_backoff(self, sleeps):
        calls = {"n": 0}

        def handler(request):
            calls["n"] += 1
            if calls["n"] < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"data": [BTC]})

        assets = await make_repository(handler).get_assets()
        assert len(assets) == 1
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_backoff_is_capped(self, sleeps):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        repository = make_repository(handler, retry_attempts=5, retry_max_delay=5)
        with pytest.raises(NetworkError) as exc_info:
            await repository.get_assets()
        assert exc_info.value.code == "NETWORK_ERROR"
        assert sleeps == [1.0, 2.0, 4.0, 5, 5]

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, sleeps):
        calls = {"n": 0}

        def handler(request):
            calls["n"] += 1
            return httpx.Response(404, json={"error": "bitcoin2 not found"})

        with pytest.raises(NetworkError) as exc_info:
            await make_repository(handler).get_asset("bitcoin2")
        assert exc_info.value.status == 404
        assert calls["n"] == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self, sleeps):
        responses = [httpx.Response(429), httpx.Response(200, json={"data": BTC})]

        def handler(request):
            return responses.pop(0)

        asset = await make_repository(handler).get_asset("bitcoin")
        assert asset.id == "bitcoin"
        assert sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_body_without_data_is_malformed(self, sleeps):
        def handler(request):
            return httpx.Response(200, json={"timestamp": 1})

        with pytest.raises(NetworkError) as exc_info:
            await make_repository(handler, retry_attempts=0).get_assets()
        assert exc_info.value.code == "MALFORMED_BODY"

    @pytest.mark.asyncio
    async def test_cache_serves_until_bypassed(self, sleeps, clock):
        calls = {"n": 0}

        def handler(request):
            calls["n"] += 1
            return httpx.Response(200, json={"data": [BTC]})

        cache = CacheManager(use_redis=False, clock=clock)
        repository = make_repository(handler, cache=cache, stale_time=120)

        await repository.get_assets()
        await repository.get_assets()
        assert calls["n"] == 1

        await repository.get_assets(use_cache=False)
        assert calls["n"] == 2

        clock.advance(121)
        await repository.get_assets()
        assert calls["n"] == 3

    @pytest.mark.asyncio
    async def test_search_assets(self, sleeps):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"data": [ETH]})

        repository = make_repository(handler)
        assert await repository.search_assets("   ") == []
        assert seen == []

        results = await repository.search_assets("eth")
        assert [a.id for a in results] == ["ethereum"]
        assert seen[0].url.params["search"] == "eth"
        assert seen[0].url.params["limit"] == "20"

    @pytest.mark.asyncio
    async def test_top_assets(self, sleeps):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"data": [BTC, ETH]})

        results = await make_repository(handler).get_top_assets(limit=2)
        assert [a.symbol for a in results] == ["BTC", "ETH"]
        assert seen[0].url.params["limit"] == "2"
        assert "search" not in seen[0].url.params

    @pytest.mark.asyncio
    async def test_asset_history(self, sleeps):
        def handler(request):
            assert request.url.path.endswith("/assets/bitcoin/history")
            assert request.url.params["interval"] == "d1"
            return httpx.Response(200, json={"data": [
                {"priceUsd": "60000.1", "time": 1717200000000, "date": "2024-06-01T00:00:00.000Z"},
            ]})

        points = await make_repository(handler).get_asset_history("bitcoin", interval="d1")
        assert points[0].price_usd == "60000.1"
        assert points[0].time == 1717200000000
