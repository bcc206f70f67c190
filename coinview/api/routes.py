"""
CoinView API routes.
Market views, preferences, the simulation wizard and simulation history.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel, Field

from coinview.shared.data_providers.interfaces import Asset
from coinview.shared.error_models import ErrorCode
from coinview.services.market_view_service.models import (
    FilteredAssetsResponse,
    FilterSpec,
    FilterUpdate,
    LiveStats,
    LiveUpdateConfig,
    LiveUpdateConfigPatch,
    Rankings,
)
from coinview.services.market_view_service.preferences import DashboardPreferences
from coinview.services.market_view_service.service import MarketViewService
from coinview.services.simulation_service import validator
from coinview.services.simulation_service.history_store import SimulationHistoryStore
from coinview.services.simulation_service.models import (
    OPTIMIZATION_TYPES,
    RISK_TOLERANCE_OPTIONS,
    TIMEFRAME_OPTIONS,
    HistoryItem,
    HistoryPage,
    HistoryStats,
    OptimizationType,
    RiskTolerance,
    SimulationRequest,
    SimulationResponse,
    Timeframe,
    WizardSnapshot,
)
from coinview.services.simulation_service.wizard import WizardStateMachine, WizardStep
from .dependencies import (
    DashboardState,
    get_history,
    get_market_view,
    get_preferences,
    get_state,
    get_wizard,
)
from .errors import ApiError

logger = logging.getLogger(__name__)

router = APIRouter()


# Request bodies

class SearchQueryRequest(BaseModel):
    query: str = ""


class SelectCoinsRequest(BaseModel):
    asset_ids: List[str] = Field(..., alias="assetIds")

    class Config:
        populate_by_name = True


class SimulationParamsPatch(BaseModel):
    timeframe: Optional[Timeframe] = None
    optimization_type: Optional[OptimizationType] = Field(None, alias="optimizationType")
    risk_tolerance: Optional[RiskTolerance] = Field(None, alias="riskTolerance")
    initial_investment: Optional[float] = Field(None, alias="initialInvestment")

    class Config:
        populate_by_name = True


class ForegroundRequest(BaseModel):
    foreground: bool


# Helpers

def _issues_as_dicts(issues) -> List[Dict[str, str]]:
    return [issue.model_dump() for issue in issues]


def _require_open(wizard: WizardStateMachine) -> None:
    if not wizard.is_open:
        raise ApiError(ErrorCode.WIZARD_CLOSED, "Simulation wizard is not open", 409)


def _require_idle(wizard: WizardStateMachine) -> None:
    _require_open(wizard)
    if wizard.is_submitting:
        raise ApiError(ErrorCode.WIZARD_BUSY, "A simulation is being submitted", 409)


def _submission_failed(wizard: WizardStateMachine) -> ApiError:
    if wizard.validation_errors:
        return ApiError(
            ErrorCode.VALIDATION_ERROR,
            "Simulation request is invalid",
            422,
            errors=_issues_as_dicts(wizard.validation_errors),
        )
    return ApiError(ErrorCode.SIMULATION_ERROR, wizard.error or "Simulation failed", 502)


# Health

@router.get("/health", tags=["Health"])
async def health(state: DashboardState = Depends(get_state)):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "polling": state.poller.is_running,
        "lastPollError": state.poller.last_error,
        "stale": state.market_view.is_stale(),
    }


# Market

@router.get("/market/assets", response_model=FilteredAssetsResponse, tags=["Market"])
async def get_filtered_assets(
    market_view: MarketViewService = Depends(get_market_view),
    preferences: DashboardPreferences = Depends(get_preferences),
):
    """Current snapshot filtered by the stored filters."""
    assets = market_view.filtered()
    return FilteredAssetsResponse(
        assets=assets,
        total=len(assets),
        filters=preferences.filters,
        active_filters=preferences.active_filter_count,
        last_update=market_view.view.fetched_at,
        is_stale=market_view.is_stale(),
    )


@router.post("/market/refresh", response_model=LiveStats, tags=["Market"])
async def refresh_market(state: DashboardState = Depends(get_state)):
    """Run one polling tick now. Refused while another tick is in flight."""
    if state.poller.tick_in_flight:
        raise ApiError(ErrorCode.RESOURCE_CONFLICT, "A refresh is already in progress", 409)
    refreshed = await state.poller.tick()
    if not refreshed and state.poller.last_error:
        raise ApiError(
            ErrorCode.NETWORK_ERROR,
            state.poller.last_error,
            503,
            metadata={"stale": True},
        )
    return state.market_view.view.live_stats


@router.post("/market/foreground", tags=["Market"])
async def set_foreground(body: ForegroundRequest, state: DashboardState = Depends(get_state)):
    """Report consumer visibility; background ticks are skipped unless enabled."""
    state.poller.set_foreground(body.foreground)
    return {"foreground": body.foreground, "polling": state.poller.should_poll()}


@router.get("/market/rankings", response_model=Rankings, tags=["Market"])
async def get_rankings(market_view: MarketViewService = Depends(get_market_view)):
    return market_view.view.rankings


@router.get("/market/live-stats", response_model=LiveStats, tags=["Market"])
async def get_live_stats(market_view: MarketViewService = Depends(get_market_view)):
    return market_view.view.live_stats


@router.post("/market/live-stats/clear", response_model=LiveStats, tags=["Market"])
async def clear_live_changes(market_view: MarketViewService = Depends(get_market_view)):
    """Acknowledge every change highlight; counts are kept."""
    return market_view.clear_changes()


@router.get("/market/search", response_model=List[Asset], tags=["Market"])
async def search_assets(
    q: str = Query("", description="Search text"),
    state: DashboardState = Depends(get_state),
):
    """Search upstream and record the query in the search history."""
    results = await state.repository.search_assets(q)
    if q.strip():
        state.preferences.add_to_search_history(q)
    return results


@router.get("/market/assets/{asset_id}", response_model=Asset, tags=["Market"])
async def get_asset(asset_id: str, state: DashboardState = Depends(get_state)):
    return await state.repository.get_asset(asset_id)


# Preferences

@router.get("/preferences/favorites", tags=["Preferences"])
async def get_favorites(preferences: DashboardPreferences = Depends(get_preferences)):
    return {"favorites": preferences.favorites}


@router.post("/preferences/favorites/{asset_id}/toggle", tags=["Preferences"])
async def toggle_favorite(asset_id: str, preferences: DashboardPreferences = Depends(get_preferences)):
    is_favorite = preferences.toggle_favorite(asset_id)
    return {"assetId": asset_id, "isFavorite": is_favorite}


@router.get("/preferences/search-history", tags=["Preferences"])
async def get_search_history(preferences: DashboardPreferences = Depends(get_preferences)):
    return {"searchHistory": preferences.search_history}


@router.delete("/preferences/search-history", tags=["Preferences"])
async def clear_search_history(preferences: DashboardPreferences = Depends(get_preferences)):
    preferences.clear_search_history()
    return {"searchHistory": []}


@router.put("/preferences/search", response_model=FilterSpec, tags=["Preferences"])
async def set_search_query(body: SearchQueryRequest, preferences: DashboardPreferences = Depends(get_preferences)):
    """Set the transient search text."""
    preferences.set_search_query(body.query)
    return preferences.filters


@router.get("/preferences/filters", tags=["Preferences"])
async def get_filters(preferences: DashboardPreferences = Depends(get_preferences)):
    return {
        "filters": preferences.filters.model_dump(mode="json", by_alias=True),
        "activeFilters": preferences.active_filter_count,
    }


@router.patch("/preferences/filters", response_model=FilterSpec, tags=["Preferences"])
async def update_filters(
    updates: List[FilterUpdate] = Body(...),
    preferences: DashboardPreferences = Depends(get_preferences),
):
    """Apply a list of tagged filter updates in order."""
    return preferences.update_filters(*updates)


@router.post("/preferences/filters/reset", response_model=FilterSpec, tags=["Preferences"])
async def reset_filters(preferences: DashboardPreferences = Depends(get_preferences)):
    return preferences.reset_filters()


@router.get("/preferences/live-config", response_model=LiveUpdateConfig, tags=["Preferences"])
async def get_live_config(preferences: DashboardPreferences = Depends(get_preferences)):
    return preferences.live_config


@router.patch("/preferences/live-config", response_model=LiveUpdateConfig, tags=["Preferences"])
async def update_live_config(body: LiveUpdateConfigPatch, state: DashboardState = Depends(get_state)):
    """Update live-update settings and restart polling with them."""
    config = state.preferences.update_live_config(body)
    await state.poller.apply_config(config)
    return config


# Wizard

@router.get("/wizard", response_model=WizardSnapshot, tags=["Wizard"])
async def get_wizard_state(wizard: WizardStateMachine = Depends(get_wizard)):
    return wizard.snapshot()


@router.post("/wizard/open", response_model=WizardSnapshot, tags=["Wizard"])
async def open_wizard(wizard: WizardStateMachine = Depends(get_wizard)):
    wizard.open()
    return wizard.snapshot()


@router.post("/wizard/close", response_model=WizardSnapshot, tags=["Wizard"])
async def close_wizard(wizard: WizardStateMachine = Depends(get_wizard)):
    """Close and reset the wizard; the current result is discarded."""
    _require_idle(wizard)
    wizard.close()
    return wizard.snapshot()


@router.put("/wizard/coins", response_model=WizardSnapshot, tags=["Wizard"])
async def set_wizard_coins(
    body: SelectCoinsRequest,
    wizard: WizardStateMachine = Depends(get_wizard),
    market_view: MarketViewService = Depends(get_market_view),
):
    """Replace the selection with assets from the current snapshot."""
    _require_idle(wizard)
    found, missing = market_view.find_assets(body.asset_ids)
    if missing:
        raise ApiError(
            ErrorCode.NOT_FOUND,
            "Some assets are not in the current market snapshot",
            404,
            metadata={"missing": missing},
        )
    wizard.set_selected_coins(found)
    return wizard.snapshot()


@router.post("/wizard/coins/{asset_id}", response_model=WizardSnapshot, tags=["Wizard"])
async def select_wizard_coin(
    asset_id: str,
    wizard: WizardStateMachine = Depends(get_wizard),
    market_view: MarketViewService = Depends(get_market_view),
):
    _require_idle(wizard)
    found, missing = market_view.find_assets([asset_id])
    if missing:
        raise ApiError(ErrorCode.NOT_FOUND, f"Asset '{asset_id}' is not in the current market snapshot", 404)
    if not wizard.select_coin(found[0]):
        raise ApiError(ErrorCode.RESOURCE_CONFLICT, "Coin already selected or selection is full", 409)
    return wizard.snapshot()


@router.delete("/wizard/coins/{asset_id}", response_model=WizardSnapshot, tags=["Wizard"])
async def deselect_wizard_coin(asset_id: str, wizard: WizardStateMachine = Depends(get_wizard)):
    _require_idle(wizard)
    wizard.deselect_coin(asset_id)
    return wizard.snapshot()


@router.patch("/wizard/params", response_model=WizardSnapshot, tags=["Wizard"])
async def update_wizard_params(body: SimulationParamsPatch, wizard: WizardStateMachine = Depends(get_wizard)):
    _require_idle(wizard)
    if not wizard.update_params(**body.model_dump(exclude_unset=True)):
        raise ApiError(
            ErrorCode.INVALID_INPUT,
            "Simulation parameters are invalid",
            422,
            errors=_issues_as_dicts(wizard.validation_errors),
        )
    return wizard.snapshot()


@router.post("/wizard/next", response_model=WizardSnapshot, tags=["Wizard"])
async def wizard_next(wizard: WizardStateMachine = Depends(get_wizard)):
    """Advance one step; on the preview step this submits the simulation."""
    _require_idle(wizard)
    submitting = wizard.current_step == WizardStep.PREVIEW
    if not await wizard.next():
        if submitting:
            raise _submission_failed(wizard)
        raise ApiError(
            ErrorCode.STEP_NOT_ALLOWED,
            f"Step {wizard.current_step} is not complete",
            409,
        )
    return wizard.snapshot()


@router.post("/wizard/previous", response_model=WizardSnapshot, tags=["Wizard"])
async def wizard_previous(wizard: WizardStateMachine = Depends(get_wizard)):
    _require_idle(wizard)
    if not wizard.previous():
        raise ApiError(ErrorCode.STEP_NOT_ALLOWED, "Already on the first step", 409)
    return wizard.snapshot()


@router.post("/wizard/step/{step}", response_model=WizardSnapshot, tags=["Wizard"])
async def wizard_go_to_step(step: int, wizard: WizardStateMachine = Depends(get_wizard)):
    _require_idle(wizard)
    if not wizard.go_to_step(step):
        raise ApiError(ErrorCode.STEP_NOT_ALLOWED, f"Step {step} does not exist", 409)
    return wizard.snapshot()


@router.post("/wizard/rerun", response_model=WizardSnapshot, tags=["Wizard"])
async def wizard_rerun(wizard: WizardStateMachine = Depends(get_wizard)):
    """Re-submit the last submitted request."""
    _require_idle(wizard)
    if not await wizard.rerun_last():
        if wizard.history.last_request() is None:
            raise ApiError(ErrorCode.NOT_FOUND, wizard.error or "No previous simulation", 404)
        raise _submission_failed(wizard)
    return wizard.snapshot()


# Simulation

@router.get("/simulation/options", tags=["Simulation"])
async def get_simulation_options():
    return {
        "optimizationTypes": [o.model_dump(mode="json", by_alias=True) for o in OPTIMIZATION_TYPES],
        "riskTolerance": [o.model_dump(mode="json") for o in RISK_TOLERANCE_OPTIONS],
        "timeframes": [o.model_dump(mode="json") for o in TIMEFRAME_OPTIONS],
    }


@router.post("/simulation/validate", tags=["Simulation"])
async def validate_simulation(request: Dict[str, Any] = Body(...)):
    """Check a (possibly partial) request; every violation is returned."""
    issues = validator.validate(request)
    return {"valid": not issues, "errors": _issues_as_dicts(issues)}


@router.post("/simulation/backtest", response_model=SimulationResponse, tags=["Simulation"])
async def run_backtest(request: Dict[str, Any] = Body(...), state: DashboardState = Depends(get_state)):
    issues = validator.validate(request)
    if issues:
        raise ApiError(
            ErrorCode.VALIDATION_ERROR, "Simulation request is invalid", 422, errors=_issues_as_dicts(issues)
        )
    return await state.optimizer.run_backtest(SimulationRequest.model_validate(request))


@router.get("/simulation/health", tags=["Simulation"])
async def optimizer_health(state: DashboardState = Depends(get_state)):
    return await state.optimizer.check_health()


@router.get("/simulation/history", response_model=List[HistoryItem], tags=["Simulation"])
async def list_history(history: SimulationHistoryStore = Depends(get_history)):
    """Local history, most recent first."""
    return history.list()


@router.get("/simulation/history/stats", response_model=HistoryStats, tags=["Simulation"])
async def history_stats(history: SimulationHistoryStore = Depends(get_history)):
    return history.stats()


@router.get("/simulation/history/remote", response_model=HistoryPage, tags=["Simulation"])
async def remote_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    optimization_type: Optional[str] = Query(None, alias="optimizationType"),
    status: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    state: DashboardState = Depends(get_state),
):
    """Server-side history; failures are reported without touching local history."""
    result = await state.history.fetch_remote(
        state.optimizer,
        page=page,
        limit=limit,
        optimization_type=optimization_type,
        status=status,
        date_from=date_from,
        date_to=date_to,
    )
    if result is None:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, state.history.error or "History unavailable", 503)
    return result


@router.get("/simulation/history/remote/{simulation_id}", response_model=SimulationResponse, tags=["Simulation"])
async def get_remote_simulation(simulation_id: str, state: DashboardState = Depends(get_state)):
    return await state.optimizer.get_simulation(simulation_id)


@router.delete("/simulation/history/remote/{simulation_id}", tags=["Simulation"])
async def delete_remote_simulation(simulation_id: str, state: DashboardState = Depends(get_state)):
    await state.optimizer.delete_simulation(simulation_id)
    state.history.remove(simulation_id)
    return {"deleted": simulation_id}


@router.delete("/simulation/history/{item_id}", tags=["Simulation"])
async def remove_history_item(item_id: str, history: SimulationHistoryStore = Depends(get_history)):
    if not history.remove(item_id):
        raise ApiError(ErrorCode.NOT_FOUND, f"History item '{item_id}' not found", 404)
    return {"deleted": item_id}


@router.delete("/simulation/history", tags=["Simulation"])
async def clear_history(history: SimulationHistoryStore = Depends(get_history)):
    history.clear()
    return {"cleared": True}
