"""
Reference catalog entities.

These records are seeded from static data and never mutated by users.
Field names follow Python conventions; `from_dict` accepts the camelCase
keys used by the catalog data file and the wire format.
"""

from dataclasses import dataclass, fields
from typing import Any


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _from_camel_dict(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        if f.name in data:
            kwargs[f.name] = data[f.name]
        elif camel_case(f.name) in data:
            kwargs[f.name] = data[camel_case(f.name)]
    return kwargs


def to_camel_dict(record: Any) -> dict[str, Any]:
    """Serialize a dataclass record using camelCase keys."""
    return {camel_case(f.name): getattr(record, f.name) for f in fields(record)}


@dataclass(frozen=True, slots=True)
class Country:
    id: str
    name: str
    name_en: str | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Country":
        return cls(**_from_camel_dict(cls, data))


@dataclass(frozen=True, slots=True)
class Period:
    id: str
    country_id: str
    name: str
    name_en: str | None = None
    start_year: int | None = None
    end_year: int | None = None
    description: str | None = None
    sort_order: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Period":
        return cls(**_from_camel_dict(cls, data))


@dataclass(frozen=True, slots=True)
class Ruler:
    """
    A ruler of the Russian Empire.

    Attributes:
        sort_order: Defines catalog display order (ascending)
        succession: Free-text notes on accession and succession
        coinage: Free-text notes on the coinage of the reign
    """

    id: str
    name: str
    period_id: str | None = None
    name_en: str | None = None
    title: str | None = None
    start_year: int | None = None
    end_year: int | None = None
    birth_year: int | None = None
    death_year: int | None = None
    description: str | None = None
    image_url: str | None = None
    sort_order: int = 0
    succession: str | None = None
    coinage: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Ruler":
        return cls(**_from_camel_dict(cls, data))


@dataclass(frozen=True, slots=True)
class CatalogCoin:
    """
    A coin type/issue in the reference catalog.

    Attributes:
        denomination: Display label ("1 рубль", "5 копеек")
        denomination_value: Face value in rubles (0.05 for 5 kopecks)
        metal: Metal label as catalogued (English or Russian)
        rarity_score: Rarity tier score, higher is rarer
        commemorative: True for commemorative issues
        ruler_name: Joined ruler name, only set by by-id lookups
    """

    id: str
    ruler_id: str
    name: str
    catalog_number: str | None = None
    name_en: str | None = None
    year: int | None = None
    denomination: str | None = None
    denomination_value: float | None = None
    currency: str | None = None
    metal: str | None = None
    weight: float | None = None
    diameter: float | None = None
    mint: str | None = None
    mint_mark: str | None = None
    mintage: int | None = None
    rarity: str | None = None
    rarity_score: int | None = None
    estimated_value_min: float | None = None
    estimated_value_max: float | None = None
    obverse_image: str | None = None
    reverse_image: str | None = None
    description: str | None = None
    commemorative: bool = False
    ruler_name: str | None = None
    ruler_name_en: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CatalogCoin":
        return cls(**_from_camel_dict(cls, data))

    def estimated_midpoint(self) -> float | None:
        """Midpoint of the estimated value range, or the single known bound."""
        low, high = self.estimated_value_min, self.estimated_value_max
        if low is not None and high is not None:
            return (low + high) / 2
        if low is not None:
            return low
        return high

    def search_text(self) -> str:
        """Lowercased haystack used for substring search."""
        parts = [
            self.name,
            self.name_en or "",
            self.catalog_number or "",
            str(self.year) if self.year is not None else "",
        ]
        return "\n".join(parts).casefold()
