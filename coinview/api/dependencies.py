"""
Dashboard state container and FastAPI dependency getters.

The container is created once by the application lifespan and reached by
endpoints through `Depends`; nothing here is a module-level singleton.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from coinview.shared.cache_manager import CacheManager
from coinview.shared.config import settings
from coinview.shared.data_providers.coincap_provider import CoinCapAssetRepository
from coinview.shared.data_providers.interfaces import AssetRepository
from coinview.shared.state_storage import StateStorage, get_state_storage
from coinview.realtime.market_polling_service import MarketPollingService
from coinview.services.market_view_service.preferences import DashboardPreferences
from coinview.services.market_view_service.service import MarketViewService
from coinview.services.simulation_service.history_store import SimulationHistoryStore
from coinview.services.simulation_service.optimizer_client import OptimizerClient
from coinview.services.simulation_service.wizard import WizardStateMachine

logger = logging.getLogger(__name__)


@dataclass
class DashboardState:
    """Everything one dashboard session needs, wired together."""
    storage: Optional[StateStorage]
    repository: AssetRepository
    preferences: DashboardPreferences
    market_view: MarketViewService
    poller: MarketPollingService
    history: SimulationHistoryStore
    optimizer: OptimizerClient
    wizard: WizardStateMachine

    async def close(self) -> None:
        await self.poller.stop()
        await self.repository.close()
        await self.optimizer.close()


def build_state(
    storage: Optional[StateStorage] = None,
    repository: Optional[AssetRepository] = None,
    optimizer: Optional[OptimizerClient] = None,
) -> DashboardState:
    """Compose the dashboard from settings; any collaborator can be injected."""
    if storage is None:
        storage = get_state_storage()
    if repository is None:
        cache = CacheManager(use_redis=settings.STATE_BACKEND == "redis")
        repository = CoinCapAssetRepository(cache=cache)
    optimizer = optimizer or OptimizerClient()

    preferences = DashboardPreferences(storage)
    market_view = MarketViewService(preferences)
    poller = MarketPollingService(repository, market_view)
    history = SimulationHistoryStore(storage)
    wizard = WizardStateMachine(optimizer, history)

    return DashboardState(
        storage=storage,
        repository=repository,
        preferences=preferences,
        market_view=market_view,
        poller=poller,
        history=history,
        optimizer=optimizer,
        wizard=wizard,
    )


def get_state(request: Request) -> DashboardState:
    return request.app.state.dashboard


def get_preferences(request: Request) -> DashboardPreferences:
    return get_state(request).preferences


def get_market_view(request: Request) -> MarketViewService:
    return get_state(request).market_view


def get_wizard(request: Request) -> WizardStateMachine:
    return get_state(request).wizard


def get_history(request: Request) -> SimulationHistoryStore:
    return get_state(request).history
