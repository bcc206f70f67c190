"""
Dashboard preferences: favorites, search history, filters and live-update config.

Everything except the current search text survives restarts through the
`ui` namespace of the state storage. A storage failure is logged and the
in-memory value keeps working.
"""
import logging
from typing import Any, FrozenSet, List, Optional

from pydantic import ValidationError

from coinview.shared.config import settings
from coinview.shared.exceptions import StorageError
from coinview.shared.state_storage import StateStorage, UI_NAMESPACE
from .models import (
    FilterSpec,
    FilterUpdate,
    LiveUpdateConfig,
    LiveUpdateConfigPatch,
    SearchFilterUpdate,
    apply_filter_update,
)

logger = logging.getLogger(__name__)


class DashboardPreferences:
    """Injectable container for the persisted dashboard preferences."""

    FAVORITES_KEY = "favorites"
    SEARCH_HISTORY_KEY = "search_history"
    LIVE_CONFIG_KEY = "live_config"
    FILTERS_KEY = "filters"

    def __init__(self, storage: Optional[StateStorage] = None, search_history_limit: Optional[int] = None):
        self.storage = storage
        self.search_history_limit = search_history_limit or settings.SEARCH_HISTORY_LIMIT

        self._favorites: List[str] = [str(f) for f in self._load(self.FAVORITES_KEY, [])]
        self._search_history: List[str] = [str(q) for q in self._load(self.SEARCH_HISTORY_KEY, [])]
        self._live_config = self._load_model(
            LiveUpdateConfig,
            self.LIVE_CONFIG_KEY,
            LiveUpdateConfig(
                enabled=settings.LIVE_UPDATE_ENABLED,
                interval=settings.LIVE_UPDATE_INTERVAL,
                background_updates=settings.LIVE_UPDATE_BACKGROUND,
            ),
        )
        self._filters = self._load_model(FilterSpec, self.FILTERS_KEY, FilterSpec())

    # Persistence helpers

    def _load(self, key: str, default: Any) -> Any:
        if self.storage is None:
            return default
        try:
            return self.storage.load(UI_NAMESPACE, key, default)
        except StorageError as e:
            logger.warning(f"Could not load preference '{key}': {e}")
            return default

    def _load_model(self, model, key: str, default):
        data = self._load(key, None)
        if data is None:
            return default
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid stored preference '{key}': {e.error_count()} errors")
            return default

    def _persist(self, key: str, value: Any) -> None:
        if self.storage is None:
            return
        try:
            self.storage.save(UI_NAMESPACE, key, value)
        except StorageError as e:
            logger.warning(f"Could not persist preference '{key}': {e}")

    # Favorites

    @property
    def favorites(self) -> List[str]:
        return list(self._favorites)

    @property
    def favorite_set(self) -> FrozenSet[str]:
        return frozenset(self._favorites)

    def is_favorite(self, asset_id: str) -> bool:
        return asset_id in self._favorites

    def add_favorite(self, asset_id: str) -> None:
        if asset_id not in self._favorites:
            self._favorites.append(asset_id)
            self._persist(self.FAVORITES_KEY, self._favorites)

    def remove_favorite(self, asset_id: str) -> None:
        if asset_id in self._favorites:
            self._favorites = [f for f in self._favorites if f != asset_id]
            self._persist(self.FAVORITES_KEY, self._favorites)

    def toggle_favorite(self, asset_id: str) -> bool:
        """Flip membership; returns True when the asset is now a favorite."""
        if self.is_favorite(asset_id):
            self.remove_favorite(asset_id)
            return False
        self.add_favorite(asset_id)
        return True

    # Search

    @property
    def search_query(self) -> str:
        return self._filters.search

    def set_search_query(self, query: str) -> None:
        """Set the transient search text (never persisted)."""
        self._filters = apply_filter_update(self._filters, SearchFilterUpdate(query=query))

    @property
    def search_history(self) -> List[str]:
        return list(self._search_history)

    def add_to_search_history(self, query: str) -> None:
        """Record a query: trimmed, lower-cased, most recent first, duplicates ignored."""
        normalized = query.strip().lower()
        if not normalized or normalized in self._search_history:
            return
        self._search_history = [normalized] + self._search_history[: self.search_history_limit - 1]
        self._persist(self.SEARCH_HISTORY_KEY, self._search_history)

    def clear_search_history(self) -> None:
        self._search_history = []
        self._persist(self.SEARCH_HISTORY_KEY, self._search_history)

    # Filters

    @property
    def filters(self) -> FilterSpec:
        return self._filters

    @property
    def active_filter_count(self) -> int:
        return self._filters.active_count

    def update_filters(self, *updates: FilterUpdate) -> FilterSpec:
        """Apply updates in order; all or nothing."""
        spec = self._filters
        for update in updates:
            spec = apply_filter_update(spec, update)
        self._filters = spec
        self._persist_filters()
        return spec

    def reset_filters(self) -> FilterSpec:
        self._filters = FilterSpec()
        self._persist_filters()
        return self._filters

    def _persist_filters(self) -> None:
        stored = self._filters.model_copy(update={"search": ""})
        self._persist(self.FILTERS_KEY, stored.model_dump(mode="json", by_alias=True))

    # Live updates

    @property
    def live_config(self) -> LiveUpdateConfig:
        return self._live_config

    def update_live_config(self, patch: LiveUpdateConfigPatch) -> LiveUpdateConfig:
        """Merge a partial config; the merged result is validated before it is kept."""
        merged = self._live_config.model_dump()
        merged.update(patch.model_dump(exclude_none=True))
        self._live_config = LiveUpdateConfig.model_validate(merged)
        self._persist(self.LIVE_CONFIG_KEY, self._live_config.model_dump(mode="json", by_alias=True))
        return self._live_config
