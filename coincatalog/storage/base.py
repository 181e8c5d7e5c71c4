"""
Storage port for the local-first layer.

The catalog store and the user collection store talk to persistent state
only through this interface. Each runtime target gets one adapter:

- SqlStorage: embedded relational store (SQLAlchemy async + aiosqlite)
- MemoryStorage: in-memory structures flushed to a JSON snapshot

The adapter is chosen by configuration (see storage.factory), never by
conditionals in business logic.

User-coin methods hand out detached copies: mutating a returned record has
no effect until it is passed back through `save_user_coin`.
"""

from abc import ABC, abstractmethod

from coincatalog.models.catalog import CatalogCoin, Country, Period, Ruler
from coincatalog.models.user_coin import UserCoin


class CollectionStorage(ABC):
    """Persistent state shared by the catalog and collection stores."""

    # --- Lifecycle ---

    @abstractmethod
    async def initialize(self) -> None:
        """Open the store, migrate and seed reference data if needed."""

    @abstractmethod
    async def close(self) -> None:
        """Release resources held by the store."""

    async def rebuild(self) -> None:
        """Recreate the store after a migration whose rollback failed."""
        await self.initialize()

    # --- Reference catalog ---

    @abstractmethod
    async def list_countries(self) -> list[Country]: ...

    @abstractmethod
    async def list_periods_by_country(self, country_id: str) -> list[Period]:
        """Periods of a country ordered by sort_order."""

    @abstractmethod
    async def list_rulers(self, period_id: str | None = None) -> list[Ruler]:
        """Rulers ordered by sort_order, optionally limited to one period."""

    @abstractmethod
    async def get_ruler(self, ruler_id: str) -> Ruler | None: ...

    @abstractmethod
    async def list_coins_by_ruler(self, ruler_id: str) -> list[CatalogCoin]:
        """Coins by year ascending, then denomination value descending."""

    @abstractmethod
    async def get_coin(self, coin_id: str) -> CatalogCoin | None:
        """Catalog coin with its ruler's names joined."""

    @abstractmethod
    async def search_coins(self, query: str, limit: int) -> list[CatalogCoin]:
        """Case-insensitive substring search ordered by year ascending."""

    # --- User coins ---

    @abstractmethod
    async def insert_user_coin(self, coin: UserCoin) -> None: ...

    @abstractmethod
    async def save_user_coin(self, coin: UserCoin) -> None:
        """Overwrite every stored field of an existing record."""

    @abstractmethod
    async def save_user_coin_if_unchanged(self, coin: UserCoin, expected: UserCoin) -> bool:
        """
        Overwrite a record only if its stored version still matches `expected`.

        The version is (updated_at, is_deleted, needs_sync). Check and write
        happen atomically, so a local mutation made after `expected` was read
        is never overwritten. Returns False when nothing was written.
        """

    @abstractmethod
    async def delete_user_coin_if_unchanged(self, expected: UserCoin) -> bool:
        """Compaction counterpart of save_user_coin_if_unchanged."""

    @abstractmethod
    async def get_user_coin(self, user_coin_id: str) -> UserCoin | None:
        """Record by id, soft-deleted records included."""

    @abstractmethod
    async def find_user_coins(
        self,
        catalog_coin_id: str,
        is_wishlist: bool | None = None,
    ) -> list[UserCoin]:
        """Live records for a catalog coin, optionally filtered by flag."""

    @abstractmethod
    async def list_user_coins(self, is_wishlist: bool) -> list[UserCoin]:
        """Live records joined with their catalog coin, newest first."""

    @abstractmethod
    async def list_all_user_coins(self) -> list[UserCoin]:
        """Every record, soft-deleted included."""

    @abstractmethod
    async def list_pending(self) -> list[UserCoin]:
        """Records with needs_sync set, oldest mutation first, then oldest record."""

    @abstractmethod
    async def delete_user_coin(self, user_coin_id: str) -> None:
        """Physically remove one record (compaction)."""

    @abstractmethod
    async def purge_user_coins(self) -> int:
        """Physically remove every record. Returns the number removed."""
