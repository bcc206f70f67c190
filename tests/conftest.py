"""
Pytest configuration and shared fixtures.
"""
import json
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import httpx
import pytest
from sqlalchemy.orm import sessionmaker

from coinview.shared.data_providers.interfaces import Asset, AssetRepository
from coinview.shared.database import Base, create_db_engine
from coinview.shared.exceptions import NetworkError
from coinview.shared.state_storage import SqlStateStorage

# Test database URL (in-memory SQLite for unit tests)
TEST_DATABASE_URL = "sqlite:///:memory:"


class FakeClock:
    """Settable clock; call it to read, advance() to move forward."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class MockRedis:
    """Dict-backed stand-in for the synchronous redis client."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def ping(self):
        return True

    def get(self, key: str):
        return self._data.get(key)

    def set(self, key: str, value: str, ex: int = None):
        self._data[key] = value
        return True

    def setex(self, key: str, ttl: int, value: str):
        self._data[key] = value
        return True

    def delete(self, key: str):
        return 1 if self._data.pop(key, None) is not None else 0


class InMemoryAssetRepository(AssetRepository):
    """AssetRepository serving a configurable snapshot; can be told to fail."""

    def __init__(self, assets: Optional[List[Asset]] = None):
        self.assets = list(assets or [])
        self.fail_with: Optional[NetworkError] = None
        self.calls = 0

    async def get_assets(self, search=None, limit=100, offset=0, use_cache=True):
        self.calls += 1
        if self.fail_with:
            raise self.fail_with
        result = self.assets
        if search:
            needle = search.lower()
            result = [a for a in result if needle in a.name.lower() or needle in a.symbol.lower()]
        return result[offset:offset + limit]

    async def get_asset(self, asset_id):
        for asset in self.assets:
            if asset.id == asset_id:
                return asset
        raise NetworkError(f"HTTP 404 from /assets/{asset_id}", status=404, code="HTTP_ERROR")

    async def get_asset_history(self, asset_id, interval=None, start=None, end=None):
        return []


def build_asset(asset_id: str, **fields) -> Asset:
    data = {
        "id": asset_id,
        "rank": "1",
        "symbol": asset_id.upper()[:4],
        "name": asset_id.capitalize(),
        "priceUsd": "100",
        "marketCapUsd": "5000000000",
        "volumeUsd24Hr": "1000000",
        "changePercent24Hr": "0",
    }
    data.update(fields)
    return Asset.model_validate(data)


@pytest.fixture
def make_asset():
    """Factory for Asset snapshots with sensible defaults (camelCase overrides)."""
    return build_asset


@pytest.fixture
def sample_assets() -> List[Asset]:
    return [
        build_asset("bitcoin", rank="1", symbol="BTC", name="Bitcoin", priceUsd="64000.50",
                    marketCapUsd="1260000000000", volumeUsd24Hr="25000000000", changePercent24Hr="2.5"),
        build_asset("ethereum", rank="2", symbol="ETH", name="Ethereum", priceUsd="3100.10",
                    marketCapUsd="372000000000", volumeUsd24Hr="12000000000", changePercent24Hr="-4.2"),
        build_asset("tether", rank="3", symbol="USDT", name="Tether", priceUsd="1.0001",
                    marketCapUsd="110000000000", volumeUsd24Hr="40000000000", changePercent24Hr="0.01"),
        build_asset("solana", rank="4", symbol="SOL", name="Solana", priceUsd="145.20",
                    marketCapUsd="65000000000", volumeUsd24Hr="3000000000", changePercent24Hr="7.8"),
        build_asset("dogecoin", rank="8", symbol="DOGE", name="Dogecoin", priceUsd="0.12",
                    marketCapUsd="17000000000", volumeUsd24Hr="900000000", changePercent24Hr="-0.6"),
        build_asset("cardano", rank="9", symbol="ADA", name="Cardano", priceUsd="0.45",
                    marketCapUsd="16000000000", volumeUsd24Hr="400000000", changePercent24Hr="-1.5"),
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="function")
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_db_engine(TEST_DATABASE_URL)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def sql_storage(session_factory) -> SqlStateStorage:
    return SqlStateStorage(session_factory)


@pytest.fixture
def mock_redis() -> MockRedis:
    """Mock Redis client for tests."""
    return MockRedis()


@pytest.fixture
def asset_repository(sample_assets) -> InMemoryAssetRepository:
    return InMemoryAssetRepository(sample_assets)


def simulation_response_body(request_body: dict, simulation_id: str = "sim-1",
                             status: str = "completed", total_return: float = 12.5) -> dict:
    """Optimizer response echoing the submitted request."""
    return {
        "id": simulation_id,
        "timestamp": "2025-06-01T12:00:05Z",
        "request": request_body,
        "portfolio": {
            "allocations": [
                {"coinId": coin["id"], "symbol": coin["symbol"], "weight": 50, "amount": 5000}
                for coin in request_body.get("coins", [])
            ],
            "performance": {
                "totalReturn": total_return,
                "annualizedReturn": 10.1,
                "volatility": 35.2,
                "sharpeRatio": 1.3,
                "maxDrawdown": -22.0,
                "winRate": 54.0,
            },
            "metrics": {"startValue": 10000, "endValue": 11250, "totalProfit": 1250, "profitPercentage": 12.5},
            "dailyReturns": [],
        },
        "riskMetrics": {"var95": -3.1, "cvar95": -4.4, "beta": 1.1, "correlation": 0.8},
        "status": status,
        "processingTime": 4.2,
    }


@pytest.fixture
def make_simulation_body():
    """Factory for optimizer response bodies."""
    return simulation_response_body


class OptimizerStub:
    """httpx.MockTransport handler recording requests to the optimizer."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.fail_status: Optional[int] = None
        self.fail_body: Optional[dict] = None
        self.raise_transport_error = False
        self.status = "completed"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_transport_error:
            raise httpx.ConnectError("connection refused", request=request)
        if self.fail_status:
            return httpx.Response(self.fail_status, json=self.fail_body or {})

        path = request.url.path
        if path.endswith("/optimize") or path.endswith("/backtest"):
            body = json.loads(request.content)
            return httpx.Response(200, json=simulation_response_body(
                body, simulation_id=f"sim-{len(self.requests)}", status=self.status
            ))
        if path.endswith("/health"):
            return httpx.Response(200, json={"status": "ok", "timestamp": "2025-06-01T12:00:00Z"})
        if path.endswith("/history"):
            return httpx.Response(200, json={
                "items": [{
                    "id": "remote-1", "name": "BTC, ETH", "timestamp": "2025-05-01T00:00:00Z",
                    "optimizationType": "sharpe", "initialInvestment": 10000,
                    "totalReturn": 8.0, "status": "completed",
                }],
                "total": 1, "page": 1, "limit": 10, "totalPages": 1,
            })
        if "/history/" in path:
            if request.method == "DELETE":
                return httpx.Response(204)
            return httpx.Response(200, json=simulation_response_body({
                "coins": [{"id": "bitcoin", "symbol": "BTC", "name": "Bitcoin"},
                          {"id": "ethereum", "symbol": "ETH", "name": "Ethereum"}],
                "dateRange": {"startDate": "2024-06-01T00:00:00Z", "endDate": "2025-06-01T00:00:00Z"},
                "timeframe": "daily",
                "optimizationType": "sharpe",
                "initialInvestment": 10000,
            }, simulation_id=path.rsplit("/", 1)[-1]))
        return httpx.Response(404, json={"message": "Not found"})


@pytest.fixture
def optimizer_stub() -> OptimizerStub:
    return OptimizerStub()


@pytest.fixture
def optimizer_client(optimizer_stub):
    from coinview.services.simulation_service.optimizer_client import OptimizerClient
    client = httpx.AsyncClient(transport=httpx.MockTransport(optimizer_stub))
    return OptimizerClient(client=client, base_url="http://optimizer.test")
