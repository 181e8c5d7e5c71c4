"""Tests for the local-first user collection store, against every storage adapter."""

from datetime import datetime, timedelta, timezone

import pytest

from coincatalog.models.failure import NotFoundError, ValidationError
from coincatalog.models.user_coin import Membership
from coincatalog.services.user_collection import UserCollectionStore
from coincatalog.storage.base import CollectionStorage


class FakeClock:
    """Deterministic clock; each call advances one second."""

    def __init__(self) -> None:
        self.now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def collection(storage: CollectionStorage, clock: FakeClock) -> UserCollectionStore:
    store = UserCollectionStore(storage, clock=clock)
    await store.initialize()
    return store


class TestAddCoin:
    async def test_add_owned_coin(self, collection: UserCollectionStore) -> None:
        coin = await collection.add_coin("coin_42", purchase_price=120.0, grade="VF")

        assert coin.is_wishlist is False
        assert coin.needs_sync is True
        assert coin.catalog_coin is not None
        assert coin.catalog_coin.name == "1 рубль 1897"
        assert collection.membership_of("coin_42") == Membership(owned=True, wishlisted=False)

    async def test_add_to_wishlist(self, collection: UserCollectionStore) -> None:
        await collection.add_coin("coin_43", is_wishlist=True)

        assert collection.membership_of("coin_43") == Membership(owned=False, wishlisted=True)
        assert [c.catalog_coin_id for c in await collection.list_user_coins(True)] == ["coin_43"]
        assert await collection.list_user_coins(False) == []

    async def test_unknown_catalog_coin(self, collection: UserCollectionStore) -> None:
        with pytest.raises(NotFoundError):
            await collection.add_coin("coin_999")

        assert await collection.pending_coins() == []

    async def test_empty_catalog_id(self, collection: UserCollectionStore) -> None:
        with pytest.raises(ValidationError):
            await collection.add_coin("  ")

    async def test_unknown_attribute(self, collection: UserCollectionStore) -> None:
        with pytest.raises(ValidationError, match="Unknown fields"):
            await collection.add_coin("coin_42", colour="green")

    async def test_owning_a_wishlisted_coin_removes_wishlist_entry(
        self, collection: UserCollectionStore, storage: CollectionStorage
    ) -> None:
        wish = await collection.add_coin("coin_42", is_wishlist=True)

        owned = await collection.add_coin("coin_42")

        live = await storage.find_user_coins("coin_42")
        assert [c.id for c in live] == [owned.id]
        gone = await storage.get_user_coin(wish.id)
        assert gone is not None
        assert gone.is_deleted is True
        assert gone.needs_sync is True
        assert collection.membership_of("coin_42") == Membership(owned=True, wishlisted=False)

    async def test_wishlisting_an_owned_coin_is_rejected(
        self, collection: UserCollectionStore
    ) -> None:
        await collection.add_coin("coin_42")

        with pytest.raises(ValidationError, match="already in the collection"):
            await collection.add_coin("coin_42", is_wishlist=True)

    async def test_adding_again_updates_existing_record(
        self, collection: UserCollectionStore, storage: CollectionStorage
    ) -> None:
        first = await collection.add_coin("coin_42", grade="F")

        second = await collection.add_coin("coin_42", notes="cleaned")

        assert second.id == first.id
        assert second.grade == "F"
        assert second.notes == "cleaned"
        assert len(await storage.find_user_coins("coin_42")) == 1


class TestUpdateCoin:
    async def test_partial_update_changes_only_given_fields(
        self, collection: UserCollectionStore
    ) -> None:
        coin = await collection.add_coin("coin_42", grade="VF", notes="estate sale")

        updated = await collection.update_coin(coin.id, grade="XF")

        assert updated.grade == "XF"
        assert updated.notes == "estate sale"

    async def test_empty_update_touches_timestamp_and_dirty_flag(
        self, collection: UserCollectionStore, storage: CollectionStorage
    ) -> None:
        coin = await collection.add_coin("coin_42", grade="VF")
        stored = await storage.get_user_coin(coin.id)
        assert stored is not None
        stored.mark_as_synced()
        await storage.save_user_coin(stored)

        updated = await collection.update_coin(coin.id)

        assert updated.needs_sync is True
        assert updated.updated_at is not None
        assert coin.updated_at is not None
        assert updated.updated_at > coin.updated_at
        assert updated.grade == "VF"
        assert updated.catalog_coin_id == coin.catalog_coin_id

    async def test_update_missing_record(self, collection: UserCollectionStore) -> None:
        with pytest.raises(NotFoundError):
            await collection.update_coin("uc_missing", grade="VF")

    async def test_update_deleted_record(self, collection: UserCollectionStore) -> None:
        coin = await collection.add_coin("coin_42")
        await collection.remove_coin("coin_42")

        with pytest.raises(NotFoundError):
            await collection.update_coin(coin.id, grade="VF")

    async def test_negative_price_rejected(self, collection: UserCollectionStore) -> None:
        coin = await collection.add_coin("coin_42")

        with pytest.raises(ValidationError):
            await collection.update_coin(coin.id, purchase_price=-1.0)


class TestRemoveAndMove:
    async def test_remove_hides_record_but_keeps_it_pending(
        self, collection: UserCollectionStore
    ) -> None:
        coin = await collection.add_coin("coin_42")

        removed = await collection.remove_coin("coin_42")

        assert removed == 1
        assert await collection.get_user_coin(coin.id) is None
        assert await collection.list_user_coins() == []
        pending = await collection.pending_coins()
        assert [(c.id, c.is_deleted) for c in pending] == [(coin.id, True)]
        assert collection.membership_of("coin_42") == Membership()

    async def test_remove_unknown_coin_is_noop(self, collection: UserCollectionStore) -> None:
        assert await collection.remove_coin("coin_44") == 0

    async def test_move_to_collection(self, collection: UserCollectionStore) -> None:
        wish = await collection.add_coin("coin_43", is_wishlist=True)

        moved = await collection.move_to_collection(wish.id)

        assert moved.id == wish.id
        assert moved.is_wishlist is False
        assert moved.needs_sync is True
        assert collection.membership_of("coin_43") == Membership(owned=True, wishlisted=False)

    async def test_move_is_idempotent(self, collection: UserCollectionStore) -> None:
        wish = await collection.add_coin("coin_43", is_wishlist=True)
        first = await collection.move_to_collection(wish.id)

        second = await collection.move_to_collection(wish.id)

        assert second.is_wishlist is False
        assert second.updated_at == first.updated_at
        assert len(await collection.list_user_coins(False)) == 1

    async def test_move_missing_record(self, collection: UserCollectionStore) -> None:
        with pytest.raises(NotFoundError):
            await collection.move_to_collection("uc_missing")


class TestClearAndAttach:
    async def test_clear_all_purges_everything(
        self, collection: UserCollectionStore, storage: CollectionStorage
    ) -> None:
        await collection.add_coin("coin_42")
        await collection.add_coin("coin_43", is_wishlist=True)

        cleared = await collection.clear_all()

        assert cleared == 2
        assert await storage.list_all_user_coins() == []
        assert collection.membership_of("coin_42") == Membership()

    async def test_attach_user_claims_guest_records(
        self, collection: UserCollectionStore, storage: CollectionStorage
    ) -> None:
        coin = await collection.add_coin("coin_42")
        stored = await storage.get_user_coin(coin.id)
        assert stored is not None
        stored.mark_as_synced()
        await storage.save_user_coin(stored)

        claimed = await collection.attach_user("user-1")

        assert claimed == 1
        assert collection.user_id == "user-1"
        claimed_coin = await storage.get_user_coin(coin.id)
        assert claimed_coin is not None
        assert claimed_coin.user_id == "user-1"
        assert claimed_coin.needs_sync is True

        assert await collection.attach_user("user-1") == 0

    async def test_new_records_carry_current_user(self, storage: CollectionStorage) -> None:
        store = UserCollectionStore(storage, user_id="user-7")

        coin = await store.add_coin("coin_42")

        assert coin.user_id == "user-7"


class TestMembershipIndex:
    async def test_index_rebuilt_from_storage(
        self, collection: UserCollectionStore, storage: CollectionStorage
    ) -> None:
        await collection.add_coin("coin_42")
        await collection.add_coin("coin_43", is_wishlist=True)
        await collection.add_coin("coin_44")
        await collection.remove_coin("coin_44")

        fresh = UserCollectionStore(storage)
        await fresh.initialize()

        assert fresh.membership_of("coin_42").owned is True
        assert fresh.membership_of("coin_43").wishlisted is True
        assert fresh.membership_of("coin_44") == Membership()

    async def test_membership_is_a_copy(self, collection: UserCollectionStore) -> None:
        await collection.add_coin("coin_42")

        collection.membership_of("coin_42").owned = False

        assert collection.membership_of("coin_42").owned is True


class TestStats:
    async def test_stats_over_owned_coins(self, collection: UserCollectionStore) -> None:
        await collection.add_coin("coin_42", purchase_price=100.0)
        await collection.add_coin("coin_43", is_wishlist=True)

        stats = await collection.get_collection_stats()

        assert stats.collection_count == 1
        assert stats.wishlist_count == 1
        assert stats.total_value == 150
        assert stats.profit_loss == 50
        assert stats.profit_loss_percent == 50

    async def test_user_valuation_overrides_estimate(
        self, collection: UserCollectionStore
    ) -> None:
        await collection.add_coin("coin_42", purchase_price=100.0, current_value=80.0)

        stats = await collection.get_collection_stats()

        assert stats.total_value == 80
        assert stats.profit_loss == -20
