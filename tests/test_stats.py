"""Tests for collection statistics."""

import pytest

from coincatalog.models.catalog import CatalogCoin
from coincatalog.models.user_coin import UserCoin
from coincatalog.services.stats import compute_collection_stats, current_value


def owned(
    price: float | None,
    low: float | None = 100,
    high: float | None = 200,
    value: float | None = None,
) -> UserCoin:
    coin = UserCoin(catalog_coin_id="coin_42", purchase_price=price, current_value=value)
    coin.catalog_coin = CatalogCoin(
        id="coin_42",
        ruler_id="r",
        name="1 рубль",
        estimated_value_min=low,
        estimated_value_max=high,
    )
    return coin


class TestCurrentValue:
    def test_uses_estimate_midpoint(self) -> None:
        assert current_value(owned(100)) == 150

    def test_user_valuation_wins(self) -> None:
        assert current_value(owned(100, value=500)) == 500

    def test_single_bound(self) -> None:
        assert current_value(owned(100, low=None, high=300)) == 300

    def test_no_estimate_is_zero(self) -> None:
        assert current_value(owned(100, low=None, high=None)) == 0

    def test_without_catalog_coin(self) -> None:
        assert current_value(UserCoin(catalog_coin_id="x")) == 0


class TestComputeCollectionStats:
    def test_profit_loss(self) -> None:
        stats = compute_collection_stats([owned(100)])

        assert stats.collection_count == 1
        assert stats.total_value == 150
        assert stats.total_purchase_price == 100
        assert stats.profit_loss == 50
        assert stats.profit_loss_percent == 50

    def test_zero_purchase_price(self) -> None:
        stats = compute_collection_stats([owned(0)])

        assert stats.profit_loss == 150
        assert stats.profit_loss_percent == 0

    def test_missing_purchase_price_counts_as_zero(self) -> None:
        stats = compute_collection_stats([owned(None), owned(100)])

        assert stats.total_purchase_price == 100
        assert stats.total_value == 300
        assert stats.profit_loss_percent == pytest.approx(200)

    def test_empty(self) -> None:
        stats = compute_collection_stats([], wishlist_count=3)

        assert stats.collection_count == 0
        assert stats.wishlist_count == 3
        assert stats.total_value == 0
        assert stats.profit_loss_percent == 0
