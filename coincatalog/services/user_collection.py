"""
User collection store.

Local-first CRUD over a user's owned and wishlisted coins. Every write
lands in local storage first, marks the record dirty and hands a snapshot
to the sync coordinator; callers never wait on the network.

Keeps an in-memory membership index (catalog coin id -> owned/wishlisted)
so catalog screens can badge coins without a query per coin.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from coincatalog.models.failure import NotFoundError, ValidationError
from coincatalog.models.user_coin import (
    EDITABLE_FIELDS,
    Membership,
    UserCoin,
    utcnow,
)
from coincatalog.services.stats import CollectionStats, compute_collection_stats
from coincatalog.services.sync_coordinator import SyncCoordinator
from coincatalog.storage.base import CollectionStorage

logger = logging.getLogger(__name__)


class UserCollectionStore:
    """
    Args:
        storage: Local store
        sync: Coordinator that pushes changes; None keeps everything local
        user_id: Current owner, None for a guest
        clock: Timestamp source for mutations
    """

    def __init__(
        self,
        storage: CollectionStorage,
        sync: SyncCoordinator | None = None,
        user_id: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._storage = storage
        self._sync = sync
        self._clock = clock
        self.user_id = user_id
        self._membership: dict[str, Membership] = {}
        if sync is not None:
            sync.add_listener(self._refresh_membership)

    async def initialize(self) -> None:
        """Build the membership index from storage."""
        self._membership = {}
        for coin in await self._storage.list_all_user_coins():
            if coin.is_live:
                self._mark_member(coin)
        logger.debug("Membership index built for %d catalog coins", len(self._membership))

    def _mark_member(self, coin: UserCoin) -> None:
        entry = self._membership.setdefault(coin.catalog_coin_id, Membership())
        if coin.is_wishlist:
            entry.wishlisted = True
        else:
            entry.owned = True

    async def _refresh_membership(self, catalog_coin_id: str) -> None:
        self._membership.pop(catalog_coin_id, None)
        for coin in await self._storage.find_user_coins(catalog_coin_id):
            self._mark_member(coin)

    def _schedule(self, coin: UserCoin) -> bool:
        if self._sync is None:
            return False
        return self._sync.schedule(coin)

    async def _get_live(self, user_coin_id: str) -> UserCoin:
        coin = await self._storage.get_user_coin(user_coin_id)
        if coin is None or coin.is_deleted:
            raise NotFoundError("User coin", user_coin_id)
        return coin

    # --- Mutations ---

    async def add_coin(
        self,
        catalog_coin_id: str,
        is_wishlist: bool = False,
        **attributes: Any,
    ) -> UserCoin:
        """
        Add a catalog coin to the collection or the wishlist.

        Adding an owned coin removes its wishlist entry first. Adding a
        coin that already has a live record of the same kind updates that
        record with `attributes` instead of creating a second one.

        Raises:
            ValidationError: Unknown attribute, empty id, or wishlisting an owned coin
            NotFoundError: catalog_coin_id is not in the catalog
        """
        unknown = set(attributes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError("Unknown fields", detail=", ".join(sorted(unknown)))

        now = self._clock()
        coin = UserCoin(
            catalog_coin_id=catalog_coin_id,
            user_id=self.user_id,
            is_wishlist=is_wishlist,
            created_at=now,
            updated_at=now,
            **attributes,
        )
        coin.validate()

        catalog_coin = await self._storage.get_coin(catalog_coin_id)
        if catalog_coin is None:
            raise NotFoundError("Catalog coin", catalog_coin_id)

        existing = await self._storage.find_user_coins(catalog_coin_id)
        for other in existing:
            if other.is_wishlist == is_wishlist:
                other.update(now, **attributes)
                await self._storage.save_user_coin(other)
                self._schedule(other)
                other.catalog_coin = catalog_coin
                return other
        if is_wishlist and existing:
            raise ValidationError("Coin is already in the collection", detail=catalog_coin_id)

        for wish in existing:
            wish.mark_as_deleted(now)
            await self._storage.save_user_coin(wish)
            self._schedule(wish)
            logger.debug("Removed wishlist entry %s for %s", wish.id, catalog_coin_id)

        await self._storage.insert_user_coin(coin)
        await self._refresh_membership(catalog_coin_id)
        self._schedule(coin)
        coin.catalog_coin = catalog_coin
        return coin

    async def update_coin(self, user_coin_id: str, **changes: Any) -> UserCoin:
        """
        Partially update a record. Only the supplied fields change.

        Raises:
            NotFoundError: No live record with this id
            ValidationError: Unknown or invalid field
        """
        coin = await self._get_live(user_coin_id)
        coin.update(self._clock(), **changes)
        await self._storage.save_user_coin(coin)
        self._schedule(coin)
        return coin

    async def remove_coin(self, catalog_coin_id: str) -> int:
        """
        Soft-delete every live record for a catalog coin.

        Returns how many records were removed.
        """
        now = self._clock()
        coins = await self._storage.find_user_coins(catalog_coin_id)
        for coin in coins:
            coin.mark_as_deleted(now)
            await self._storage.save_user_coin(coin)
            self._schedule(coin)
        self._membership.pop(catalog_coin_id, None)
        return len(coins)

    async def move_to_collection(self, user_coin_id: str) -> UserCoin:
        """
        Turn a wishlist entry into an owned coin. Owned records are returned as-is.

        Raises:
            NotFoundError: No live record with this id
        """
        coin = await self._get_live(user_coin_id)
        if not coin.is_wishlist:
            return coin
        coin.is_wishlist = False
        coin.mark_for_sync(self._clock())
        await self._storage.save_user_coin(coin)
        await self._refresh_membership(coin.catalog_coin_id)
        self._schedule(coin)
        return coin

    async def clear_all(self) -> int:
        """
        Delete every record, locally and (best effort) remotely.

        Deletions are handed to the sync queue before the local rows are
        purged; a deletion that fails to sync is not retried.
        """
        now = self._clock()
        coins = await self._storage.list_all_user_coins()
        for coin in coins:
            if coin.is_live:
                coin.mark_as_deleted(now)
            if coin.needs_sync and not self._schedule(coin):
                logger.warning("Deletion of %s not queued, remote copy kept", coin.id)
        purged = await self._storage.purge_user_coins()
        self._membership = {}
        logger.info("Cleared %d user coin record(s)", purged)
        return purged

    async def attach_user(self, user_id: str) -> int:
        """
        Adopt guest records for `user_id` after login.

        Returns how many records were claimed; each is queued for sync.
        """
        self.user_id = user_id
        claimed = 0
        now = self._clock()
        for coin in await self._storage.list_all_user_coins():
            if coin.user_id is not None:
                continue
            coin.user_id = user_id
            coin.mark_for_sync(now)
            await self._storage.save_user_coin(coin)
            self._schedule(coin)
            claimed += 1
        if claimed:
            logger.info("Attached %d guest record(s) to user %s", claimed, user_id)
        return claimed

    # --- Reads ---

    async def get_user_coin(self, user_coin_id: str) -> UserCoin | None:
        """Live record by id, None if missing or deleted."""
        coin = await self._storage.get_user_coin(user_coin_id)
        if coin is None or coin.is_deleted:
            return None
        return coin

    async def list_user_coins(self, is_wishlist: bool = False) -> list[UserCoin]:
        """Live records of one kind, newest first, joined with the catalog."""
        return await self._storage.list_user_coins(is_wishlist)

    def membership_of(self, catalog_coin_id: str) -> Membership:
        entry = self._membership.get(catalog_coin_id)
        if entry is None:
            return Membership()
        return Membership(owned=entry.owned, wishlisted=entry.wishlisted)

    async def pending_coins(self) -> list[UserCoin]:
        """Dirty records (deleted ones included), oldest change first."""
        return await self._storage.list_pending()

    async def get_collection_stats(self) -> CollectionStats:
        owned = await self._storage.list_user_coins(is_wishlist=False)
        wishlist = await self._storage.list_user_coins(is_wishlist=True)
        return compute_collection_stats(owned, wishlist_count=len(wishlist))
