"""
Simulation History Store
Capacity-bounded, most-recent-first log of simulation outcomes, persisted in
the `simulation` namespace of the state storage.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from coinview.shared.config import settings
from coinview.shared.exceptions import SimulationError, StorageError
from coinview.shared.state_storage import SIMULATION_NAMESPACE, StateStorage
from .models import (
    HistoryItem,
    HistoryPage,
    HistoryStats,
    SimulationRequest,
    SimulationResponse,
    SimulationStatus,
)
from .optimizer_client import OptimizerClient

logger = logging.getLogger(__name__)


def history_item_from_response(response: SimulationResponse) -> HistoryItem:
    """Summarize an optimizer response; the name joins the selected symbols."""
    request = response.request
    return HistoryItem(
        id=response.id,
        name=", ".join(coin.symbol for coin in request.coins),
        timestamp=response.timestamp,
        optimization_type=request.optimization_type.value,
        initial_investment=request.initial_investment,
        total_return=response.portfolio.performance.total_return,
        status=response.status,
    )


def failed_history_item(request: SimulationRequest, timestamp: datetime) -> HistoryItem:
    """Summary for a submission that never produced a response."""
    return HistoryItem(
        id=str(uuid.uuid4()),
        name=", ".join(coin.symbol for coin in request.coins),
        timestamp=timestamp.isoformat(),
        optimization_type=request.optimization_type.value,
        initial_investment=request.initial_investment,
        total_return=0,
        status=SimulationStatus.FAILED,
    )


class SimulationHistoryStore:
    """
    Append-only history with FIFO eviction.

    New items are prepended; once the list exceeds `capacity` the oldest
    entries (at the tail) are dropped. Every mutation is written through to
    storage. Storage failures are logged and the in-memory list stays valid.
    """

    HISTORY_KEY = "history"
    LAST_REQUEST_KEY = "last_request"

    def __init__(
        self,
        storage: Optional[StateStorage] = None,
        capacity: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.storage = storage
        self.capacity = capacity or settings.HISTORY_CAPACITY
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.error: Optional[str] = None
        self.is_loading = False
        self._last_request: Optional[SimulationRequest] = None
        self._items: List[HistoryItem] = self._load_items()

    # Persistence

    def _load_items(self) -> List[HistoryItem]:
        if self.storage is None:
            return []
        try:
            raw = self.storage.load(SIMULATION_NAMESPACE, self.HISTORY_KEY, [])
        except StorageError as e:
            logger.warning(f"Could not load simulation history: {e}")
            return []

        items = []
        for entry in raw or []:
            try:
                items.append(HistoryItem.model_validate(entry))
            except ValidationError:
                logger.warning("Skipping invalid stored history item")
        return items[: self.capacity]

    def _persist(self) -> None:
        if self.storage is None:
            return
        try:
            self.storage.save(
                SIMULATION_NAMESPACE,
                self.HISTORY_KEY,
                [item.model_dump(mode="json", by_alias=True) for item in self._items],
            )
        except StorageError as e:
            logger.warning(f"Could not persist simulation history: {e}")

    # Core operations

    def append(self, item: HistoryItem) -> None:
        """Prepend an item, evicting the oldest beyond capacity."""
        self._items = [item] + self._items[: self.capacity - 1]
        self._persist()

    def list(self) -> List[HistoryItem]:
        """Most recent first."""
        return list(self._items)

    def clear(self) -> None:
        self._items = []
        self._persist()

    def __len__(self) -> int:
        return len(self._items)

    def remove(self, item_id: str) -> bool:
        remaining = [item for item in self._items if item.id != item_id]
        if len(remaining) == len(self._items):
            return False
        self._items = remaining
        self._persist()
        return True

    def get(self, item_id: str) -> Optional[HistoryItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def record_response(self, response: SimulationResponse) -> HistoryItem:
        item = history_item_from_response(response)
        self.append(item)
        return item

    def record_failure(self, request: SimulationRequest) -> HistoryItem:
        item = failed_history_item(request, self._clock())
        self.append(item)
        return item

    # Last submitted request (for re-running)

    def save_last_request(self, request: SimulationRequest) -> None:
        self._last_request = request
        if self.storage is None:
            return
        try:
            self.storage.save(SIMULATION_NAMESPACE, self.LAST_REQUEST_KEY, request.to_wire())
        except StorageError as e:
            logger.warning(f"Could not persist last simulation request: {e}")

    def last_request(self) -> Optional[SimulationRequest]:
        if self._last_request is not None or self.storage is None:
            return self._last_request
        try:
            raw = self.storage.load(SIMULATION_NAMESPACE, self.LAST_REQUEST_KEY, None)
        except StorageError as e:
            logger.warning(f"Could not load last simulation request: {e}")
            return None
        if raw is None:
            return None
        try:
            self._last_request = SimulationRequest.model_validate(raw)
        except ValidationError:
            logger.warning("Ignoring invalid stored simulation request")
            return None
        return self._last_request

    # Statistics

    def stats(self) -> HistoryStats:
        items = self._items
        if not items:
            return HistoryStats()

        counts: Dict[SimulationStatus, int] = {status: 0 for status in SimulationStatus}
        by_type: Dict[str, int] = {}
        for item in items:
            counts[item.status] += 1
            by_type[item.optimization_type] = by_type.get(item.optimization_type, 0) + 1

        completed = [item for item in items if item.status == SimulationStatus.COMPLETED]
        average_return = (
            sum(item.total_return for item in completed) / len(completed) if completed else 0
        )
        return HistoryStats(
            total=len(items),
            completed=counts[SimulationStatus.COMPLETED],
            processing=counts[SimulationStatus.PROCESSING],
            failed=counts[SimulationStatus.FAILED],
            success_rate=counts[SimulationStatus.COMPLETED] / len(items) * 100,
            total_investment=sum(item.initial_investment for item in items),
            average_return=average_return,
            by_optimization_type=by_type,
        )

    # Remote history

    async def fetch_remote(
        self,
        client: OptimizerClient,
        page: int = 1,
        limit: int = 10,
        **filters: Optional[str],
    ) -> Optional[HistoryPage]:
        """
        Fetch server-side history. A failure is recorded on `error` and
        None is returned; the local history is left untouched.
        """
        self.is_loading = True
        self.error = None
        try:
            return await client.get_history(page=page, limit=limit, **filters)
        except SimulationError as e:
            self.error = e.message
            logger.warning(f"Remote simulation history unavailable: {e}")
            return None
        finally:
            self.is_loading = False
