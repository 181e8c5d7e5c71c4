"""Tests for the denomination classifier."""

from coincatalog.models.catalog import CatalogCoin
from coincatalog.services.denominations import (
    DENOMINATION_ORDER,
    DenominationType,
    classify_coin,
    group_coins,
    metal_type,
)
from coincatalog.services.catalog_data import load_catalog_data


def make_coin(metal: str | None, value: float | None = 1.0, commemorative: bool = False) -> CatalogCoin:
    return CatalogCoin(
        id=f"{metal}-{value}-{commemorative}",
        ruler_id="r",
        name="coin",
        metal=metal,
        denomination_value=value,
        commemorative=commemorative,
    )


class TestMetalType:
    def test_russian_and_english_labels(self) -> None:
        assert metal_type("золото") == "gold"
        assert metal_type("Gold") == "gold"
        assert metal_type("серебро 900") == "silver"
        assert metal_type("медь") == "copper"
        assert metal_type("bronze") == "copper"

    def test_unknown_metal(self) -> None:
        assert metal_type("платина") is None
        assert metal_type(None) is None
        assert metal_type("") is None


class TestClassifyCoin:
    def test_gold(self) -> None:
        assert classify_coin(make_coin("золото", 15.0)) == DenominationType.GOLD

    def test_silver_ruble_threshold(self) -> None:
        assert classify_coin(make_coin("серебро", 0.5)) == DenominationType.SILVER_RUBLE
        assert classify_coin(make_coin("серебро", 1.0)) == DenominationType.SILVER_RUBLE
        assert classify_coin(make_coin("серебро", 0.25)) == DenominationType.SILVER_SMALL

    def test_silver_without_value_is_small(self) -> None:
        assert classify_coin(make_coin("silver", None)) == DenominationType.SILVER_SMALL

    def test_copper(self) -> None:
        assert classify_coin(make_coin("медь", 0.01)) == DenominationType.COPPER

    def test_commemorative_wins_over_metal(self) -> None:
        coin = make_coin("серебро", 1.0, commemorative=True)
        assert classify_coin(coin) == DenominationType.COMMEMORATIVE

    def test_other_metal_unclassified(self) -> None:
        assert classify_coin(make_coin("платина", 3.0)) is None


class TestGroupCoins:
    def test_groups_follow_fixed_order(self) -> None:
        coins = [
            make_coin("медь", 0.01),
            make_coin("золото", 10.0),
            make_coin("серебро", 0.1),
            make_coin("серебро", 1.0, commemorative=True),
        ]

        groups = group_coins(coins)

        assert [g.type for g in groups] == [
            DenominationType.GOLD,
            DenominationType.SILVER_SMALL,
            DenominationType.COPPER,
            DenominationType.COMMEMORATIVE,
        ]

    def test_never_reports_zero_counts(self) -> None:
        groups = group_coins([make_coin("золото"), make_coin("золото"), make_coin("платина")])

        assert len(groups) == 1
        assert groups[0].count == 2
        assert groups[0].display_name == "Золотые монеты"

    def test_empty_input(self) -> None:
        assert group_coins([]) == []

    def test_packaged_catalog_groups_are_ordered_subsets(self) -> None:
        data = load_catalog_data()
        for ruler in data.rulers:
            coins = [c for c in data.coins if c.ruler_id == ruler.id]
            groups = group_coins(coins)
            types = [g.type for g in groups]
            assert types == [t for t in DENOMINATION_ORDER if t in types]
            assert all(g.count > 0 for g in groups)
