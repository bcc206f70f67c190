"""
Unit tests for the simulation history store.
"""
import pytest

from coinview.services.simulation_service.history_store import SimulationHistoryStore
from coinview.services.simulation_service.models import (
    HistoryItem,
    SimulationRequest,
    SimulationResponse,
    SimulationStatus,
)
from coinview.shared.state_storage import SIMULATION_NAMESPACE

REQUEST_BODY = {
    "coins": [
        {"id": "bitcoin", "symbol": "BTC", "name": "Bitcoin"},
        {"id": "solana", "symbol": "SOL", "name": "Solana"},
    ],
    "dateRange": {"startDate": "2024-06-01T00:00:00Z", "endDate": "2025-06-01T00:00:00Z"},
    "timeframe": "daily",
    "optimizationType": "momentum",
    "initialInvestment": 2500,
}


def make_item(index: int, status: str = "completed", total_return: float = 0.0,
              optimization_type: str = "sharpe", investment: float = 1000) -> HistoryItem:
    return HistoryItem(
        id=f"sim-{index}",
        name="BTC, ETH",
        timestamp=f"2025-01-01T00:00:{index % 60:02d}Z",
        optimization_type=optimization_type,
        initial_investment=investment,
        total_return=total_return,
        status=status,
    )


@pytest.mark.unit
class TestCapacity:

    def test_fifo_eviction(self):
        store = SimulationHistoryStore(capacity=50)
        for i in range(51):
            store.append(make_item(i))

        items = store.list()
        assert len(items) == 50
        assert items[0].id == "sim-50"
        assert items[-1].id == "sim-1"
        assert store.get("sim-0") is None

    def test_default_capacity(self):
        store = SimulationHistoryStore()
        for i in range(60):
            store.append(make_item(i))
        assert len(store) == 50

    def test_list_is_a_copy(self):
        store = SimulationHistoryStore()
        store.append(make_item(1))
        store.list().clear()
        assert len(store) == 1


@pytest.mark.unit
class TestPersistence:

    def test_survives_reload(self, sql_storage):
        store = SimulationHistoryStore(sql_storage)
        store.append(make_item(1))
        store.append(make_item(2))

        reloaded = SimulationHistoryStore(sql_storage)
        assert [item.id for item in reloaded.list()] == ["sim-2", "sim-1"]

    def test_stored_with_wire_names(self, sql_storage):
        SimulationHistoryStore(sql_storage).append(make_item(1))
        raw = sql_storage.load(SIMULATION_NAMESPACE, "history")
        assert raw[0]["optimizationType"] == "sharpe"
        assert raw[0]["initialInvestment"] == 1000

    def test_invalid_entries_are_skipped(self, sql_storage):
        sql_storage.save(SIMULATION_NAMESPACE, "history", [
            {"id": "broken"},
            make_item(7).model_dump(mode="json", by_alias=True),
        ])
        assert [item.id for item in SimulationHistoryStore(sql_storage).list()] == ["sim-7"]

    def test_remove_and_clear_persist(self, sql_storage):
        store = SimulationHistoryStore(sql_storage)
        store.append(make_item(1))
        store.append(make_item(2))

        assert store.remove("sim-1") is True
        assert store.remove("missing") is False
        assert [item.id for item in SimulationHistoryStore(sql_storage).list()] == ["sim-2"]

        store.clear()
        assert SimulationHistoryStore(sql_storage).list() == []

    def test_last_request_survives_reload(self, sql_storage):
        request = SimulationRequest.model_validate(REQUEST_BODY)
        SimulationHistoryStore(sql_storage).save_last_request(request)

        restored = SimulationHistoryStore(sql_storage).last_request()
        assert restored == request

    def test_no_last_request(self, sql_storage):
        assert SimulationHistoryStore(sql_storage).last_request() is None


@pytest.mark.unit
class TestRecording:

    def test_record_response(self, make_simulation_body):
        store = SimulationHistoryStore()
        response = SimulationResponse.model_validate(
            make_simulation_body(REQUEST_BODY, simulation_id="abc", total_return=7.5)
        )
        item = store.record_response(response)

        assert item.id == "abc"
        assert item.name == "BTC, SOL"
        assert item.optimization_type == "momentum"
        assert item.initial_investment == 2500
        assert item.total_return == 7.5
        assert store.list() == [item]

    def test_record_failure(self, clock):
        store = SimulationHistoryStore(clock=clock)
        item = store.record_failure(SimulationRequest.model_validate(REQUEST_BODY))

        assert item.status == SimulationStatus.FAILED
        assert item.total_return == 0
        assert item.timestamp == clock.now.isoformat()


@pytest.mark.unit
class TestStats:

    def test_empty(self):
        stats = SimulationHistoryStore().stats()
        assert stats.total == 0
        assert stats.success_rate == 0

    def test_aggregates(self):
        store = SimulationHistoryStore()
        store.append(make_item(1, total_return=10, optimization_type="sharpe"))
        store.append(make_item(2, total_return=20, optimization_type="sharpe", investment=3000))
        store.append(make_item(3, status="failed", optimization_type="momentum"))
        store.append(make_item(4, status="processing", optimization_type="risk_parity"))

        stats = store.stats()
        assert stats.total == 4
        assert stats.completed == 2
        assert stats.failed == 1
        assert stats.processing == 1
        assert stats.success_rate == 50
        assert stats.total_investment == 6000
        assert stats.average_return == 15
        assert stats.by_optimization_type == {"sharpe": 2, "momentum": 1, "risk_parity": 1}


@pytest.mark.unit
class TestRemoteHistory:

    @pytest.mark.asyncio
    async def test_fetch(self, optimizer_client):
        store = SimulationHistoryStore()
        page = await store.fetch_remote(optimizer_client, page=1, limit=10, status="completed")

        assert page.items[0].id == "remote-1"
        assert store.error is None
        assert store.is_loading is False
        assert store.list() == []

    @pytest.mark.asyncio
    async def test_failure_is_recorded(self, optimizer_client, optimizer_stub):
        optimizer_stub.fail_status = 503
        optimizer_stub.fail_body = {"message": "Optimizer offline"}
        store = SimulationHistoryStore()
        store.append(make_item(1))

        assert await store.fetch_remote(optimizer_client) is None
        assert store.error == "Optimizer offline"
        assert store.is_loading is False
        assert len(store) == 1
