"""
In-memory storage adapter.

Reference data is held in plain lists built from the static catalog.
User coins live in a dict and are flushed to a JSON snapshot on every
mutation when a snapshot path is configured.
"""

import json
import logging
import os
from dataclasses import replace
from pathlib import Path

from coincatalog.models.catalog import CatalogCoin, Country, Period, Ruler
from coincatalog.models.user_coin import UserCoin
from coincatalog.services.catalog_data import CatalogData
from coincatalog.storage.base import CollectionStorage

logger = logging.getLogger(__name__)


def _coin_sort_key(coin: CatalogCoin) -> tuple[bool, int, float]:
    # Unknown years sort first, matching SQL NULL ordering
    return (coin.year is not None, coin.year or 0, -(coin.denomination_value or 0))


class MemoryStorage(CollectionStorage):
    def __init__(self, catalog: CatalogData, snapshot_path: Path | None = None) -> None:
        self._catalog = catalog
        self._snapshot_path = snapshot_path
        self._countries: list[Country] = []
        self._periods: list[Period] = []
        self._rulers: dict[str, Ruler] = {}
        self._coins: dict[str, CatalogCoin] = {}
        self._user_coins: dict[str, UserCoin] = {}

    async def initialize(self) -> None:
        self._countries = list(self._catalog.countries)
        self._periods = list(self._catalog.periods)
        self._rulers = {ruler.id: ruler for ruler in self._catalog.rulers}
        self._coins = {coin.id: coin for coin in self._catalog.coins}
        self._user_coins = self._load_snapshot()
        logger.info(
            "Memory storage ready: %d catalog coins, %d user coins",
            len(self._coins),
            len(self._user_coins),
        )

    async def close(self) -> None:
        self._flush()

    # --- Snapshot ---

    def _load_snapshot(self) -> dict[str, UserCoin]:
        if self._snapshot_path is None or not self._snapshot_path.exists():
            return {}
        try:
            with open(self._snapshot_path, encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable snapshot %s: %s", self._snapshot_path, e)
            return {}
        coins = (UserCoin.from_record(record) for record in records)
        return {coin.id: coin for coin in coins}

    def _flush(self) -> None:
        if self._snapshot_path is None:
            return
        records = [coin.to_record() for coin in self._user_coins.values()]
        self._snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._snapshot_path.with_suffix(self._snapshot_path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(records, f, ensure_ascii=False)
        os.replace(tmp_path, self._snapshot_path)

    # --- Reference catalog ---

    async def list_countries(self) -> list[Country]:
        return list(self._countries)

    async def list_periods_by_country(self, country_id: str) -> list[Period]:
        periods = [p for p in self._periods if p.country_id == country_id]
        return sorted(periods, key=lambda p: p.sort_order)

    async def list_rulers(self, period_id: str | None = None) -> list[Ruler]:
        rulers = [r for r in self._rulers.values() if period_id is None or r.period_id == period_id]
        return sorted(rulers, key=lambda r: r.sort_order)

    async def get_ruler(self, ruler_id: str) -> Ruler | None:
        return self._rulers.get(ruler_id)

    async def list_coins_by_ruler(self, ruler_id: str) -> list[CatalogCoin]:
        coins = [c for c in self._coins.values() if c.ruler_id == ruler_id]
        return sorted(coins, key=_coin_sort_key)

    async def get_coin(self, coin_id: str) -> CatalogCoin | None:
        coin = self._coins.get(coin_id)
        if coin is None:
            return None
        ruler = self._rulers.get(coin.ruler_id)
        return replace(
            coin,
            ruler_name=ruler.name if ruler else None,
            ruler_name_en=ruler.name_en if ruler else None,
        )

    async def search_coins(self, query: str, limit: int) -> list[CatalogCoin]:
        needle = query.casefold()
        matches = [c for c in self._coins.values() if needle in c.search_text()]
        matches.sort(key=lambda c: (c.year is not None, c.year or 0))
        return matches[:limit]

    # --- User coins ---

    async def insert_user_coin(self, coin: UserCoin) -> None:
        self._user_coins[coin.id] = coin.snapshot()
        self._flush()

    async def save_user_coin(self, coin: UserCoin) -> None:
        self._user_coins[coin.id] = coin.snapshot()
        self._flush()

    def _is_unchanged(self, expected: UserCoin) -> bool:
        stored = self._user_coins.get(expected.id)
        return stored is not None and stored.version == expected.version

    async def save_user_coin_if_unchanged(self, coin: UserCoin, expected: UserCoin) -> bool:
        if not self._is_unchanged(expected):
            return False
        self._user_coins[coin.id] = coin.snapshot()
        self._flush()
        return True

    async def delete_user_coin_if_unchanged(self, expected: UserCoin) -> bool:
        if not self._is_unchanged(expected):
            return False
        del self._user_coins[expected.id]
        self._flush()
        return True

    async def get_user_coin(self, user_coin_id: str) -> UserCoin | None:
        coin = self._user_coins.get(user_coin_id)
        return coin.snapshot() if coin else None

    async def find_user_coins(
        self,
        catalog_coin_id: str,
        is_wishlist: bool | None = None,
    ) -> list[UserCoin]:
        return [
            coin.snapshot()
            for coin in self._user_coins.values()
            if coin.catalog_coin_id == catalog_coin_id
            and coin.is_live
            and (is_wishlist is None or coin.is_wishlist == is_wishlist)
        ]

    async def list_user_coins(self, is_wishlist: bool) -> list[UserCoin]:
        coins = []
        for stored in self._user_coins.values():
            if stored.is_deleted or stored.is_wishlist != is_wishlist:
                continue
            coin = stored.snapshot()
            coin.catalog_coin = await self.get_coin(coin.catalog_coin_id)
            coins.append(coin)
        return sorted(coins, key=lambda c: c.created_at, reverse=True)

    async def list_all_user_coins(self) -> list[UserCoin]:
        return [coin.snapshot() for coin in self._user_coins.values()]

    async def list_pending(self) -> list[UserCoin]:
        pending = [coin.snapshot() for coin in self._user_coins.values() if coin.needs_sync]
        return sorted(pending, key=lambda c: (c.updated_at or c.created_at, c.created_at, c.id))

    async def delete_user_coin(self, user_coin_id: str) -> None:
        if self._user_coins.pop(user_coin_id, None) is not None:
            self._flush()

    async def purge_user_coins(self) -> int:
        count = len(self._user_coins)
        self._user_coins.clear()
        self._flush()
        return count
