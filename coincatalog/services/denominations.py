"""
Denomination classifier.

Maps a catalog coin to one of six browsing categories. Pure functions only;
the catalog store uses them to build per-ruler grouping summaries.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from coincatalog.models.catalog import CatalogCoin


class DenominationType(str, Enum):
    """Browsing categories, declared in display priority order."""

    GOLD = "gold"
    SILVER_RUBLE = "silver_ruble"
    SILVER_SMALL = "silver_small"
    COPPER = "copper"
    COMMEMORATIVE = "commemorative"
    TOKEN = "token"


DENOMINATION_ORDER: tuple[DenominationType, ...] = tuple(DenominationType)

DISPLAY_NAMES: dict[DenominationType, str] = {
    DenominationType.GOLD: "Золотые монеты",
    DenominationType.SILVER_RUBLE: "Серебряные рубли",
    DenominationType.SILVER_SMALL: "Серебряная мелочь",
    DenominationType.COPPER: "Медные монеты",
    DenominationType.COMMEMORATIVE: "Памятные монеты",
    DenominationType.TOKEN: "Жетоны",
}

# Silver at or above half a ruble counts as ruble-class silver
SILVER_RUBLE_THRESHOLD = 0.5

# Metal labels are catalogued in both English and Russian
_METAL_PREFIXES: dict[str, tuple[str, ...]] = {
    "gold": ("gold", "золот"),
    "silver": ("silver", "серебр"),
    "copper": ("copper", "мед", "мёд", "бронз", "bronze"),
}


@dataclass(frozen=True, slots=True)
class DenominationGroup:
    type: DenominationType
    display_name: str
    count: int


def metal_type(metal: str | None) -> str | None:
    """Normalise a catalogued metal label to gold/silver/copper, or None."""
    if not metal:
        return None
    label = metal.strip().casefold()
    for kind, prefixes in _METAL_PREFIXES.items():
        if label.startswith(prefixes):
            return kind
    return None


def classify_coin(coin: CatalogCoin) -> DenominationType | None:
    """
    Classify a coin into a denomination category.

    Commemorative issues win regardless of metal. Coins of any other metal
    are unclassified and return None.
    """
    if coin.commemorative:
        return DenominationType.COMMEMORATIVE

    kind = metal_type(coin.metal)
    if kind == "gold":
        return DenominationType.GOLD
    if kind == "silver":
        value = coin.denomination_value or 0
        if value >= SILVER_RUBLE_THRESHOLD:
            return DenominationType.SILVER_RUBLE
        return DenominationType.SILVER_SMALL
    if kind == "copper":
        return DenominationType.COPPER
    return None


def group_coins(coins: Iterable[CatalogCoin]) -> list[DenominationGroup]:
    """Count coins per category; empty categories are omitted."""
    counts: dict[DenominationType, int] = {}
    for coin in coins:
        category = classify_coin(coin)
        if category is None:
            continue
        counts[category] = counts.get(category, 0) + 1

    return [
        DenominationGroup(type=category, display_name=DISPLAY_NAMES[category], count=counts[category])
        for category in DENOMINATION_ORDER
        if counts.get(category)
    ]
