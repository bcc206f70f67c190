"""
Simulation Wizard
Five-step state machine that collects a simulation request, gates every
forward move on the current step's validity and submits the result to the
optimizer.

Transitions:
    next         gated on the current step; on Preview it submits instead
    previous     always allowed while current_step > 0
    go_to_step   any step in 0..4, no re-validation

All transitions (and edits) are refused while a submission is in flight.
Closing mid-flight starts a new session; the late response only reaches history.
"""
import logging
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from coinview.shared.data_providers.interfaces import Asset
from coinview.shared.exceptions import SimulationError
from . import validator
from .history_store import SimulationHistoryStore
from .models import (
    MAX_COINS,
    MIN_COINS,
    CoinRef,
    SimulationParams,
    SimulationRequest,
    SimulationResponse,
    ValidationIssue,
    WizardSnapshot,
)
from .optimizer_client import OptimizerClient

logger = logging.getLogger(__name__)

TRAILING_PERIOD = timedelta(days=365)


def _param_issue(error: Dict[str, Any]) -> ValidationIssue:
    name = str(error["loc"][0]) if error["loc"] else "params"
    field = SimulationParams.model_fields.get(name)
    return ValidationIssue(field=(field.alias if field and field.alias else name), message=error["msg"])


class WizardStep(IntEnum):
    SELECT_COINS = 0
    SET_PARAMETERS = 1
    SET_RISK = 2
    PREVIEW = 3
    RESULTS = 4


FIRST_STEP = WizardStep.SELECT_COINS
LAST_STEP = WizardStep.RESULTS


class WizardStateMachine:
    """
    One wizard session. Created when the wizard opens; `close` returns it to
    the initial state and drops any result. Nothing is persisted mid-flight.
    """

    def __init__(
        self,
        optimizer: OptimizerClient,
        history: SimulationHistoryStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.optimizer = optimizer
        self.history = history
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.is_open = False
        self._session = 0
        self._reset()

    def _reset(self) -> None:
        # Responses that arrive for an earlier session are dropped.
        self._session += 1
        self.current_step: int = FIRST_STEP
        self.selected_coins: List[Asset] = []
        self.params = SimulationParams()
        self.is_submitting = False
        self.error: Optional[str] = None
        self.validation_errors: List[ValidationIssue] = []
        self.current_simulation: Optional[SimulationResponse] = None

    # Lifecycle

    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        """Reset to the initial state and discard the current result."""
        if self.is_submitting:
            logger.warning("Closing wizard while a submission is in flight")
        self.is_open = False
        self._reset()

    # Validity

    def is_step_valid(self, step: int) -> bool:
        if step == WizardStep.SELECT_COINS:
            return MIN_COINS <= len(self.selected_coins) <= MAX_COINS
        if step == WizardStep.SET_PARAMETERS:
            return bool(self.params.timeframe) and bool(self.params.optimization_type)
        if step == WizardStep.SET_RISK:
            return self.params.initial_investment is not None and self.params.initial_investment > 0
        if step == WizardStep.PREVIEW:
            return True
        return False

    def can_proceed(self) -> bool:
        return not self.is_submitting and self.is_step_valid(self.current_step)

    def can_go_back(self) -> bool:
        return not self.is_submitting and self.current_step > FIRST_STEP

    # Transitions

    async def next(self) -> bool:
        """
        Advance one step if the current step is valid.
        On Preview this submits the request and only advances on success.
        """
        if not self.can_proceed():
            return False
        if self.current_step == WizardStep.PREVIEW:
            return await self.submit()
        if self.current_step >= LAST_STEP:
            return False
        self.current_step += 1
        return True

    def previous(self) -> bool:
        if not self.can_go_back():
            return False
        self.current_step -= 1
        return True

    def go_to_step(self, step: int) -> bool:
        if self.is_submitting or not FIRST_STEP <= step <= LAST_STEP:
            return False
        self.current_step = step
        return True

    # Coin selection

    def select_coin(self, asset: Asset) -> bool:
        if self.is_submitting or len(self.selected_coins) >= MAX_COINS:
            return False
        if any(coin.id == asset.id for coin in self.selected_coins):
            return False
        self.selected_coins.append(asset)
        return True

    def deselect_coin(self, asset_id: str) -> bool:
        if self.is_submitting:
            return False
        remaining = [coin for coin in self.selected_coins if coin.id != asset_id]
        changed = len(remaining) != len(self.selected_coins)
        self.selected_coins = remaining
        return changed

    def set_selected_coins(self, assets: Iterable[Asset]) -> bool:
        if self.is_submitting:
            return False
        unique: Dict[str, Asset] = {}
        for asset in assets:
            unique.setdefault(asset.id, asset)
        self.selected_coins = list(unique.values())
        return True

    # Parameters

    def update_params(self, **changes: Any) -> bool:
        """
        Merge parameter changes (Python field names).
        Invalid values leave the parameters untouched and are reported on
        `validation_errors`.
        """
        if self.is_submitting:
            return False
        merged = self.params.model_dump()
        merged.update(changes)
        try:
            self.params = SimulationParams.model_validate(merged)
        except ValidationError as e:
            self.validation_errors = [_param_issue(err) for err in e.errors()]
            self.error = self.validation_errors[0].message
            return False
        self.validation_errors = []
        self.error = None
        return True

    # Submission

    def build_payload(self) -> Dict[str, Any]:
        """Wire-shaped request from the current selections plus a 1-year trailing date range."""
        end = self._clock()
        start = end - TRAILING_PERIOD
        payload: Dict[str, Any] = {
            "coins": [CoinRef.from_asset(asset).model_dump() for asset in self.selected_coins],
            "dateRange": {"startDate": start.isoformat(), "endDate": end.isoformat()},
        }
        params = self.params.model_dump(mode="json", by_alias=True)
        payload.update({k: v for k, v in params.items() if v is not None})
        return payload

    async def submit(self) -> bool:
        """Validate and submit the current selections."""
        if self.is_submitting:
            return False
        payload = self.build_payload()
        issues = validator.validate(payload, now=self._clock)
        if issues:
            self.validation_errors = issues
            self.error = issues[0].message
            logger.info(f"Simulation request rejected by validation: {len(issues)} issues")
            return False
        return await self._run(SimulationRequest.model_validate(payload))

    async def rerun_last(self) -> bool:
        """Re-submit the last submitted request after validating it again."""
        if self.is_submitting:
            return False
        request = self.history.last_request()
        if request is None:
            self.error = "No previous simulation to re-run"
            return False
        issues = validator.validate(request, now=self._clock)
        if issues:
            self.validation_errors = issues
            self.error = issues[0].message
            return False
        return await self._run(request)

    async def _run(self, request: SimulationRequest) -> bool:
        session = self._session
        self.validation_errors = []
        self.error = None
        self.is_submitting = True
        self.history.save_last_request(request)
        try:
            response = await self.optimizer.optimize(request)
        except SimulationError as e:
            self.history.record_failure(request)
            logger.error(f"Simulation submission failed ({e.code}): {e}")
            if session == self._session:
                self.error = e.message
            return False
        finally:
            if session == self._session:
                self.is_submitting = False

        self.history.record_response(response)
        if session != self._session:
            logger.info(f"Simulation {response.id} finished after the wizard was closed")
            return False

        self.current_simulation = response
        self.current_step = WizardStep.RESULTS
        logger.info(f"Simulation {response.id} finished with status {response.status.value}")
        return True

    def snapshot(self) -> WizardSnapshot:
        return WizardSnapshot(
            is_open=self.is_open,
            current_step=int(self.current_step),
            selected_coins=[CoinRef.from_asset(asset) for asset in self.selected_coins],
            params=self.params,
            is_submitting=self.is_submitting,
            can_proceed=self.can_proceed(),
            can_go_back=self.can_go_back(),
            error=self.error,
            validation_errors=self.validation_errors,
            current_simulation=self.current_simulation,
        )
