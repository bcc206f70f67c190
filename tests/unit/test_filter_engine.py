"""
Unit tests for the filter engine.
"""
import pytest

from coinview.services.market_view_service import filter_engine
from coinview.services.market_view_service.metrics import MarketCategory, matches_category
from coinview.services.market_view_service.models import (
    CategoryFilterUpdate,
    FilterSpec,
    RangeFilterUpdate,
    apply_filter_update,
)


def ids(assets):
    return [asset.id for asset in assets]


@pytest.mark.unit
class TestFilterEngine:
    """Test FilterSpec evaluation over asset snapshots."""

    def test_rising_scenario(self, make_asset):
        """Only the asset with a positive change passes a rising filter."""
        assets = [
            make_asset("a", priceUsd="100", changePercent24Hr="5"),
            make_asset("b", priceUsd="50", changePercent24Hr="-3"),
        ]
        spec = FilterSpec(
            category="rising",
            priceRange=(0, 1000),
            changeRange=(-50, 50),
            rankRange=(1, 100),
            search="",
            onlyFavorites=False,
        )
        assert ids(filter_engine.apply(assets, spec)) == ["a"]

    def test_default_spec_keeps_everything_in_order(self, sample_assets):
        result = filter_engine.apply(sample_assets, FilterSpec())
        assert ids(result) == ids(sample_assets)

    def test_search_matches_name_symbol_or_id_case_insensitively(self, sample_assets):
        assert ids(filter_engine.apply(sample_assets, FilterSpec(search="BIT"))) == ["bitcoin"]
        assert ids(filter_engine.apply(sample_assets, FilterSpec(search="sol"))) == ["solana"]
        assert ids(filter_engine.apply(sample_assets, FilterSpec(search="usdt"))) == ["tether"]
        assert filter_engine.apply(sample_assets, FilterSpec(search="zzz")) == []

    def test_blank_search_is_a_no_op(self, sample_assets):
        assert len(filter_engine.apply(sample_assets, FilterSpec(search="   "))) == len(sample_assets)

    def test_categories(self, sample_assets):
        rising = filter_engine.apply(sample_assets, FilterSpec(category=MarketCategory.RISING))
        falling = filter_engine.apply(sample_assets, FilterSpec(category=MarketCategory.FALLING))
        stable = filter_engine.apply(sample_assets, FilterSpec(category=MarketCategory.STABLE))

        assert ids(rising) == ["bitcoin", "tether", "solana"]
        assert ids(falling) == ["ethereum", "dogecoin", "cardano"]
        assert ids(stable) == ["tether", "dogecoin"]

    def test_stable_bounds_are_inclusive(self, make_asset):
        assets = [
            make_asset("lo", changePercent24Hr="-1"),
            make_asset("hi", changePercent24Hr="1"),
            make_asset("out", changePercent24Hr="1.01"),
        ]
        result = filter_engine.apply(assets, FilterSpec(category="stable"))
        assert ids(result) == ["lo", "hi"]

    def test_range_bounds_are_inclusive(self, make_asset):
        assets = [
            make_asset("low", priceUsd="10"),
            make_asset("high", priceUsd="20"),
            make_asset("above", priceUsd="20.01"),
        ]
        result = filter_engine.apply(assets, FilterSpec(priceRange=(10, 20)))
        assert ids(result) == ["low", "high"]

    def test_malformed_numbers_fail_range_clauses_without_raising(self, make_asset):
        assets = [
            make_asset("good", priceUsd="100"),
            make_asset("bad-price", priceUsd="n/a"),
            make_asset("negative-price", priceUsd="-5"),
            make_asset("bad-rank", rank="first"),
        ]
        result = filter_engine.apply(assets, FilterSpec())
        assert ids(result) == ["good"]

    def test_malformed_change_matches_only_the_all_category(self):
        assert matches_category(None, MarketCategory.ALL)
        for category in (MarketCategory.RISING, MarketCategory.FALLING, MarketCategory.STABLE):
            assert not matches_category(None, category)

    def test_only_favorites(self, sample_assets):
        spec = FilterSpec(onlyFavorites=True)
        result = filter_engine.apply(sample_assets, spec, favorites={"solana", "bitcoin"})
        assert ids(result) == ["bitcoin", "solana"]

    def test_only_favorites_without_favorites_set_passes_nothing(self, sample_assets):
        assert filter_engine.apply(sample_assets, FilterSpec(onlyFavorites=True)) == []

    def test_favorites_ignored_when_clause_off(self, sample_assets):
        result = filter_engine.apply(sample_assets, FilterSpec(), favorites={"bitcoin"})
        assert len(result) == len(sample_assets)

    def test_idempotent(self, sample_assets):
        spec = FilterSpec(category="falling", priceRange=(0, 5000))
        once = filter_engine.apply(sample_assets, spec)
        twice = filter_engine.apply(once, spec)
        assert ids(twice) == ids(once)

    def test_widening_a_range_never_removes_assets(self, sample_assets):
        narrow = FilterSpec(priceRange=(0.1, 200), changeRange=(-2, 3))
        narrow_result = set(ids(filter_engine.apply(sample_assets, narrow)))

        for update in (
            RangeFilterUpdate(field="price", bounds=(0, 100000)),
            RangeFilterUpdate(field="change", bounds=(-50, 50)),
            RangeFilterUpdate(field="rank", bounds=(0, 1000)),
            RangeFilterUpdate(field="market_cap", bounds=(0, 3e12)),
        ):
            wider = apply_filter_update(narrow, update)
            assert narrow_result <= set(ids(filter_engine.apply(sample_assets, wider)))

    def test_does_not_mutate_input(self, sample_assets):
        snapshot = list(sample_assets)
        filter_engine.apply(sample_assets, FilterSpec(category="rising"))
        assert sample_assets == snapshot


@pytest.mark.unit
class TestFilterSpec:

    def test_min_greater_than_max_rejected(self):
        with pytest.raises(ValueError):
            FilterSpec(priceRange=(10, 1))

    def test_active_count(self):
        assert FilterSpec().active_count == 0
        spec = FilterSpec(search="btc", onlyFavorites=True, category="rising")
        assert spec.active_count == 3

    def test_updates_return_new_specs(self):
        spec = FilterSpec()
        updated = apply_filter_update(spec, CategoryFilterUpdate(category="falling"))
        assert spec.category == MarketCategory.ALL
        assert updated.category == MarketCategory.FALLING

    def test_range_update_rejects_inverted_bounds(self):
        with pytest.raises(ValueError):
            RangeFilterUpdate(field="price", bounds=(5, 1))
