"""
Market Polling Service
Pulls the asset list at a configurable interval and feeds every snapshot
through the market view (filter, rankings, live stats).
"""
import asyncio
import logging
from typing import Optional

from coinview.shared.config import settings
from coinview.shared.data_providers.interfaces import AssetRepository
from coinview.shared.exceptions import NetworkError
from coinview.services.market_view_service.models import LiveUpdateConfig
from coinview.services.market_view_service.service import MarketViewService

logger = logging.getLogger(__name__)


class MarketPollingService:
    """
    Timer-driven refresh loop with an explicit start/stop lifecycle.

    At most one tick is in flight: a tick requested while another is still
    awaiting its fetch is skipped, so two snapshots can never race to update
    the tracker's previous-snapshot reference.
    """

    def __init__(
        self,
        repository: AssetRepository,
        market_view: MarketViewService,
        config: Optional[LiveUpdateConfig] = None,
        limit: Optional[int] = None,
        max_backoff: Optional[int] = None,
    ):
        self.repository = repository
        self.market_view = market_view
        self.config = config or market_view.preferences.live_config
        self.limit = limit or settings.ASSET_LIST_LIMIT
        self.max_backoff = settings.POLL_MAX_BACKOFF if max_backoff is None else max_backoff
        self.is_running = False
        self.is_foreground = True
        self.last_error: Optional[str] = None
        self.skipped_ticks = 0
        self._poll_task: Optional[asyncio.Task] = None
        self._tick_in_flight = False
        self._consecutive_errors = 0

    @property
    def tick_in_flight(self) -> bool:
        return self._tick_in_flight

    async def start(self):
        """Start the polling loop (no-op when live updates are disabled)."""
        if not self.config.enabled:
            logger.info("Live updates disabled; market polling not started")
            return
        if self.is_running:
            logger.warning("Market polling service already running")
            return

        self.is_running = True
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info(f"Market polling service started (interval {self.config.interval}s)")

    async def stop(self):
        """Stop the polling loop and wait for it to finish."""
        self.is_running = False
        if self._poll_task:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None
        logger.info("Market polling service stopped")

    async def apply_config(self, config: LiveUpdateConfig):
        """Swap in a new config, restarting the loop so the new interval applies at once."""
        was_running = self.is_running
        await self.stop()
        self.config = config
        self.market_view.tracker.set_window(config.interval)
        if was_running or config.enabled:
            await self.start()

    def set_foreground(self, is_foreground: bool) -> None:
        """Report whether the consumer is visible; matters for foreground-only polling."""
        self.is_foreground = is_foreground

    def should_poll(self) -> bool:
        return self.config.enabled and (self.config.background_updates or self.is_foreground)

    def next_delay(self) -> float:
        """
        Seconds until the next tick.
        Consecutive failures back off exponentially: interval, 2x, 4x ... capped.
        """
        interval = self.config.interval
        if self._consecutive_errors > 1:
            return min(interval * (2 ** (self._consecutive_errors - 1)), self.max_backoff)
        return interval

    async def tick(self) -> bool:
        """
        One fetch followed by one full market view recompute.

        Returns:
            True when a new snapshot was applied, False when skipped or failed
        """
        if self._tick_in_flight:
            self.skipped_ticks += 1
            logger.debug("Previous market tick still in flight; skipping")
            return False

        self._tick_in_flight = True
        try:
            assets = await self.repository.get_assets(limit=self.limit, use_cache=False)
            self.market_view.apply_snapshot(assets)
            self._consecutive_errors = 0
            self.last_error = None
            return True
        except NetworkError as e:
            self._consecutive_errors += 1
            self.last_error = str(e)
            # Keep last known values, flagged as stale
            self.market_view.mark_fetch_failed()
            logger.error(f"Error in market polling (attempt {self._consecutive_errors}): {e}")
            return False
        finally:
            self._tick_in_flight = False

    async def _poll_loop(self):
        """Main polling loop."""
        while self.is_running:
            if self.should_poll():
                try:
                    await self.tick()
                except Exception as e:
                    self._consecutive_errors += 1
                    self.last_error = str(e)
                    self.market_view.mark_fetch_failed()
                    logger.error(f"Unexpected error in market polling loop: {e}", exc_info=True)
            else:
                logger.debug("Consumer in background; market tick skipped")
            delay = self.next_delay()
            if self._consecutive_errors > 1:
                logger.warning(f"Using exponential backoff: {delay}s")
            await asyncio.sleep(delay)
