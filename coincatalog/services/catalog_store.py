"""
Catalog store.

Read-only queries over the reference catalog: rulers, coins, text search
and per-ruler denomination groups.
"""

from coincatalog.config import SEARCH_RESULT_LIMIT
from coincatalog.models.catalog import CatalogCoin, Country, Period, Ruler
from coincatalog.services.denominations import (
    DenominationGroup,
    DenominationType,
    classify_coin,
    group_coins,
)
from coincatalog.storage.base import CollectionStorage


class CatalogStore:
    def __init__(self, storage: CollectionStorage) -> None:
        self._storage = storage

    async def list_countries(self) -> list[Country]:
        return await self._storage.list_countries()

    async def list_periods_by_country(self, country_id: str) -> list[Period]:
        return await self._storage.list_periods_by_country(country_id)

    async def list_rulers(self) -> list[Ruler]:
        """All rulers in catalog display order."""
        return await self._storage.list_rulers()

    async def list_rulers_by_period(self, period_id: str) -> list[Ruler]:
        return await self._storage.list_rulers(period_id=period_id)

    async def get_ruler_by_id(self, ruler_id: str) -> Ruler | None:
        """Returns None for an unknown id."""
        return await self._storage.get_ruler(ruler_id)

    async def list_coins_by_ruler(self, ruler_id: str) -> list[CatalogCoin]:
        """
        Coins of one ruler.

        Ordered by year, and within a year by face value, highest first.
        """
        return await self._storage.list_coins_by_ruler(ruler_id)

    async def get_coin_by_id(self, coin_id: str) -> CatalogCoin | None:
        return await self._storage.get_coin(coin_id)

    async def search_coins(self, query: str) -> list[CatalogCoin]:
        """
        Case-insensitive substring search.

        Matches name, English name, catalog number and year. At most
        SEARCH_RESULT_LIMIT results, ordered by year. Callers enforce
        MIN_SEARCH_LENGTH before calling.
        """
        query = query.strip()
        if not query:
            return []
        return await self._storage.search_coins(query, SEARCH_RESULT_LIMIT)

    async def group_denominations(self, ruler_id: str) -> list[DenominationGroup]:
        """Denomination groups of one ruler in fixed category order."""
        coins = await self._storage.list_coins_by_ruler(ruler_id)
        return group_coins(coins)

    async def list_coins_by_denomination(
        self,
        ruler_id: str,
        denomination: DenominationType | str,
    ) -> list[CatalogCoin]:
        """Coins of one ruler in one denomination category, by year."""
        category = DenominationType(denomination)
        coins = await self._storage.list_coins_by_ruler(ruler_id)
        matching = [coin for coin in coins if classify_coin(coin) == category]
        return sorted(matching, key=lambda c: (c.year is not None, c.year or 0))
