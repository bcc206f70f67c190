"""
Unit tests for the market view service.
"""
import pytest

from coinview.services.market_view_service.metrics import MarketCategory
from coinview.services.market_view_service.models import CategoryFilterUpdate, FilterSpec
from coinview.services.market_view_service.preferences import DashboardPreferences
from coinview.services.market_view_service.service import MarketViewService


@pytest.fixture
def preferences():
    return DashboardPreferences()


@pytest.fixture
def service(preferences, clock):
    return MarketViewService(preferences, stale_after=300, clock=clock)


def ids(assets):
    return [asset.id for asset in assets]


@pytest.mark.unit
class TestSnapshots:

    def test_stale_before_first_snapshot(self, service):
        assert service.is_stale() is True
        assert service.filtered() == []

    def test_apply_snapshot_replaces_view(self, service, sample_assets):
        before = service.view
        after = service.apply_snapshot(sample_assets)

        assert after is service.view
        assert after is not before
        assert before.assets == ()
        assert len(after.rankings.top_volumes) == 5

    def test_stale_after_age(self, service, sample_assets, clock):
        service.apply_snapshot(sample_assets)
        clock.advance(300)
        assert service.is_stale() is False
        clock.advance(1)
        assert service.is_stale() is True

    def test_clear_changes_updates_view(self, service, make_asset):
        service.apply_snapshot([make_asset("a", priceUsd="1")])
        service.apply_snapshot([make_asset("a", priceUsd="2")])
        assert service.view.live_stats.changed_asset_ids == ["a"]

        service.clear_changes()
        assert service.view.live_stats.changed_asset_ids == []


@pytest.mark.unit
class TestFiltered:

    def test_uses_preference_filters(self, service, preferences, sample_assets):
        service.apply_snapshot(sample_assets)
        preferences.update_filters(CategoryFilterUpdate(category="falling"))
        assert ids(service.filtered()) == ["ethereum", "dogecoin", "cardano"]

    def test_explicit_spec(self, service, sample_assets):
        service.apply_snapshot(sample_assets)
        spec = FilterSpec(category=MarketCategory.RISING, search="sol")
        assert ids(service.filtered(spec)) == ["solana"]

    def test_memoized_until_snapshot_changes(self, service, sample_assets, monkeypatch):
        from coinview.services.market_view_service import service as service_module

        calls = []
        original = service_module.filter_engine.apply

        def counting_apply(*args, **kwargs):
            calls.append(1)
            return original(*args, **kwargs)

        monkeypatch.setattr(service_module.filter_engine, "apply", counting_apply)

        service.apply_snapshot(sample_assets)
        service.filtered()
        service.filtered()
        assert len(calls) == 1

        service.apply_snapshot(sample_assets)
        service.filtered()
        assert len(calls) == 2

    def test_favorite_changes_invalidate_memo(self, service, preferences, sample_assets):
        service.apply_snapshot(sample_assets)
        spec = FilterSpec(only_favorites=True)

        assert service.filtered(spec) == []
        preferences.add_favorite("tether")
        assert ids(service.filtered(spec)) == ["tether"]

    def test_returned_list_is_a_copy(self, service, sample_assets):
        service.apply_snapshot(sample_assets)
        service.filtered().clear()
        assert len(service.filtered()) == 6


@pytest.mark.unit
def test_find_assets(service, sample_assets):
    service.apply_snapshot(sample_assets)
    found, missing = service.find_assets(["solana", "nope", "bitcoin"])
    assert ids(found) == ["solana", "bitcoin"]
    assert missing == ["nope"]
