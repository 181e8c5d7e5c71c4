"""End-to-end offline/online scenarios through CatalogApp and the in-process server."""

import pytest
from httpx import AsyncClient

from coincatalog.app import CatalogApp
from coincatalog.config import Settings
from coincatalog.jobs.sync_collection import run_sync
from coincatalog.services.catalog_data import CatalogData


@pytest.fixture
def app_settings() -> Settings:
    return Settings(storage_backend="memory", remote_api_url="http://test")


@pytest.fixture
async def catalog_app(app_settings: Settings, catalog: CatalogData, switchable_transport):
    app = CatalogApp(app_settings, catalog=catalog, transport=switchable_transport)
    await app.start()
    yield app
    await app.close()


async def remote_list(client: AsyncClient, token: str, wishlist: bool) -> list[str]:
    response = await client.get(
        "/collection",
        params={"isWishlist": "true" if wishlist else "false"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 200
    return [c["catalogCoinId"] for c in response.json()]


class TestOfflineFirst:
    async def test_wishlist_added_offline_syncs_when_back_online(
        self, catalog_app: CatalogApp, switchable_transport, client: AsyncClient
    ) -> None:
        """A change made offline is kept locally and pushed on the next sync."""
        await catalog_app.register("c@example.com", "secret-pass")
        switchable_transport.online = False

        coin = await catalog_app.collection.add_coin("coin_42", is_wishlist=True)
        await catalog_app.sync.join()

        assert catalog_app.collection.membership_of("coin_42").wishlisted is True
        stored = await catalog_app.collection.get_user_coin(coin.id)
        assert stored is not None
        assert stored.needs_sync is True

        switchable_transport.online = True
        report = await catalog_app.sync.sync_all()

        assert report.succeeded == 1
        stored = await catalog_app.collection.get_user_coin(coin.id)
        assert stored is not None
        assert stored.needs_sync is False
        token = catalog_app.credentials.token
        assert token is not None
        assert "coin_42" in await remote_list(client, token, wishlist=True)

    async def test_online_changes_are_pushed_in_background(
        self, catalog_app: CatalogApp, client: AsyncClient
    ) -> None:
        await catalog_app.register("c@example.com", "secret-pass")

        await catalog_app.collection.add_coin("coin_43", purchase_price=1200.0)
        await catalog_app.sync.join()

        assert await catalog_app.collection.pending_coins() == []
        token = catalog_app.credentials.token
        assert token is not None
        assert await remote_list(client, token, wishlist=False) == ["coin_43"]

    async def test_guest_records_are_adopted_on_login(
        self, catalog_app: CatalogApp, client: AsyncClient, registered: dict
    ) -> None:
        guest = await catalog_app.collection.add_coin("coin_44")
        assert guest.user_id is None

        await catalog_app.login("a@example.com", "secret-pass")
        await catalog_app.sync.join()

        adopted = await catalog_app.collection.get_user_coin(guest.id)
        assert adopted is not None
        assert adopted.user_id == registered["user"]["id"]
        assert adopted.needs_sync is False
        assert await remote_list(client, registered["token"], wishlist=False) == ["coin_44"]

    async def test_wishlist_to_collection_removes_remote_wishlist_entry(
        self, catalog_app: CatalogApp, client: AsyncClient
    ) -> None:
        await catalog_app.register("c@example.com", "secret-pass")
        wish = await catalog_app.collection.add_coin("coin_42", is_wishlist=True)
        await catalog_app.sync.join()

        await catalog_app.collection.move_to_collection(wish.id)
        await catalog_app.sync.join()

        token = catalog_app.credentials.token
        assert token is not None
        assert await remote_list(client, token, wishlist=True) == []
        assert await remote_list(client, token, wishlist=False) == ["coin_42"]

    async def owned_over_synced_wishlist(self, catalog_app: CatalogApp, switchable_transport):
        """Wishlist coin_42 online, then own it while offline."""
        await catalog_app.register("c@example.com", "secret-pass")
        wish = await catalog_app.collection.add_coin("coin_42", is_wishlist=True)
        await catalog_app.sync.join()
        switchable_transport.online = False
        owned = await catalog_app.collection.add_coin("coin_42", grade="VF")
        await catalog_app.sync.join()
        switchable_transport.online = True
        return wish, owned

    async def assert_owned_survives(
        self, catalog_app: CatalogApp, client: AsyncClient, owned_id: str
    ) -> None:
        token = catalog_app.credentials.token
        assert token is not None
        assert await remote_list(client, token, wishlist=True) == []
        assert await remote_list(client, token, wishlist=False) == ["coin_42"]

        await catalog_app.sync.pull()

        assert [c.id for c in await catalog_app.collection.list_user_coins()] == [owned_id]
        assert await catalog_app.collection.list_user_coins(is_wishlist=True) == []
        membership = catalog_app.collection.membership_of("coin_42")
        assert (membership.owned, membership.wishlisted) == (True, False)

    async def test_owning_a_synced_wishlist_coin_with_sync_all(
        self, catalog_app: CatalogApp, switchable_transport, client: AsyncClient
    ) -> None:
        """The wishlist entry goes away remotely and the owned record stays."""
        _, owned = await self.owned_over_synced_wishlist(catalog_app, switchable_transport)

        report = await catalog_app.sync.sync_all()

        assert (report.attempted, report.succeeded) == (2, 2)
        await self.assert_owned_survives(catalog_app, client, owned.id)

    async def test_owning_a_synced_wishlist_coin_with_push_all(
        self, catalog_app: CatalogApp, switchable_transport, client: AsyncClient
    ) -> None:
        _, owned = await self.owned_over_synced_wishlist(catalog_app, switchable_transport)

        report = await catalog_app.sync.push_all()

        assert (report.attempted, report.succeeded) == (2, 2)
        await self.assert_owned_survives(catalog_app, client, owned.id)

    async def test_wishlist_deletion_pushed_after_replacement(
        self, catalog_app: CatalogApp, switchable_transport, client: AsyncClient
    ) -> None:
        """A late deletion of the wishlist entry leaves the owned record alone."""
        wish, owned = await self.owned_over_synced_wishlist(catalog_app, switchable_transport)
        pending = {c.id: c for c in await catalog_app.collection.pending_coins()}

        assert await catalog_app.sync.sync_one(pending[owned.id]) is True
        assert await catalog_app.sync.sync_one(pending[wish.id]) is True

        await self.assert_owned_survives(catalog_app, client, owned.id)

    async def test_logout_keeps_local_records(self, catalog_app: CatalogApp) -> None:
        await catalog_app.register("c@example.com", "secret-pass")
        await catalog_app.collection.add_coin("coin_42")

        await catalog_app.logout()

        assert catalog_app.credentials.is_authenticated is False
        assert catalog_app.collection.user_id is None
        assert len(await catalog_app.collection.list_user_coins()) == 1


class TestSyncJob:
    async def test_run_sync_logs_in_and_pushes(
        self, catalog_app: CatalogApp, client: AsyncClient, registered: dict
    ) -> None:
        await catalog_app.collection.add_coin("coin_42", grade="VF")

        await run_sync(catalog_app, "a@example.com", "secret-pass")

        assert await catalog_app.collection.pending_coins() == []
        assert await remote_list(client, registered["token"], wishlist=False) == ["coin_42"]

    async def test_run_sync_pulls_other_devices(
        self, catalog_app: CatalogApp, client: AsyncClient, registered: dict
    ) -> None:
        await client.post(
            "/collection",
            json={"catalogCoinId": "coin_45", "grade": "G"},
            headers={"Authorization": f"Bearer {registered['token']}"},
        )

        await run_sync(catalog_app, "a@example.com", "secret-pass")

        [coin] = await catalog_app.collection.list_user_coins()
        assert coin.catalog_coin_id == "coin_45"
        assert coin.grade == "G"
        assert catalog_app.collection.membership_of("coin_45").owned is True

    async def test_run_sync_with_bad_password_reports_failures(
        self, catalog_app: CatalogApp, registered: dict
    ) -> None:
        await catalog_app.collection.add_coin("coin_42")

        report = await run_sync(catalog_app, "a@example.com", "wrong-pass")

        assert (report.attempted, report.failed) == (1, 1)
        assert len(await catalog_app.collection.pending_coins()) == 1
