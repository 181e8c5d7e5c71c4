"""
Static catalog content loader.

Reads the reference catalog (countries, periods, rulers, coins) from a JSON
document. The packaged catalog lives in coincatalog/data/catalog.json.
"""

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

from coincatalog.models.catalog import CatalogCoin, Country, Period, Ruler

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent.parent / "data"
DEFAULT_CATALOG_PATH = DATA_DIR / "catalog.json"


class CatalogDataError(Exception):
    """Raised when catalog content is missing or inconsistent."""

    pass


@dataclass(frozen=True)
class CatalogData:
    countries: tuple[Country, ...] = field(default_factory=tuple)
    periods: tuple[Period, ...] = field(default_factory=tuple)
    rulers: tuple[Ruler, ...] = field(default_factory=tuple)
    coins: tuple[CatalogCoin, ...] = field(default_factory=tuple)

    def validate(self) -> None:
        """
        Check identity and reference invariants.

        Raises:
            CatalogDataError: On duplicate coin ids or a coin whose
                ruler does not exist.
        """
        ruler_ids = {ruler.id for ruler in self.rulers}
        seen: set[str] = set()
        for coin in self.coins:
            if coin.id in seen:
                raise CatalogDataError(f"Duplicate catalog coin id: {coin.id}")
            seen.add(coin.id)
            if coin.ruler_id not in ruler_ids:
                raise CatalogDataError(
                    f"Catalog coin {coin.id} references unknown ruler {coin.ruler_id}"
                )


def parse_catalog(raw: dict[str, Any]) -> CatalogData:
    """Build CatalogData from the decoded JSON document."""
    default_period = raw.get("defaultPeriodId")
    rulers = []
    for item in raw.get("rulers", []):
        if default_period and not item.get("periodId"):
            item = {**item, "periodId": default_period}
        rulers.append(Ruler.from_dict(item))

    data = CatalogData(
        countries=tuple(Country.from_dict(c) for c in raw.get("countries", [])),
        periods=tuple(Period.from_dict(p) for p in raw.get("periods", [])),
        rulers=tuple(rulers),
        coins=tuple(CatalogCoin.from_dict(c) for c in raw.get("coins", [])),
    )
    data.validate()
    return data


def load_catalog_data(path: Path | None = None) -> CatalogData:
    """
    Load catalog content from file.

    Args:
        path: Path to JSON file. Defaults to the packaged catalog.

    Raises:
        FileNotFoundError: If the catalog file doesn't exist
        CatalogDataError: If the content violates catalog invariants
    """
    if path is None:
        path = DEFAULT_CATALOG_PATH

    if not path.exists():
        raise FileNotFoundError(f"Catalog data not found at {path}")

    with open(path, encoding="utf-8") as f:
        raw = json.load(f)

    data = parse_catalog(raw)
    logger.info(
        "Loaded catalog: %d rulers, %d coins from %s",
        len(data.rulers),
        len(data.coins),
        path,
    )
    return data


@lru_cache(maxsize=1)
def get_catalog_data() -> CatalogData:
    """Get the cached packaged catalog."""
    return load_catalog_data()
