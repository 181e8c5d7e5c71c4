"""
Composition root for the local-first client.

CatalogApp builds the storage adapter, both stores, the remote client and
the sync coordinator from Settings, and owns their lifecycle:

    async with CatalogApp(settings) as app:
        await app.login(email, password)
        await app.collection.add_coin("nicholas_ii_1897_rouble")
"""

import logging

import httpx

from coincatalog.config import Settings, settings as default_settings
from coincatalog.models.failure import KnownError, SchemaMigrationError
from coincatalog.services.catalog_data import CatalogData
from coincatalog.services.catalog_store import CatalogStore
from coincatalog.services.credentials import AuthenticatedUser, CredentialStore
from coincatalog.services.remote_client import RemoteCollectionClient
from coincatalog.services.sync_coordinator import SyncCoordinator
from coincatalog.services.user_collection import UserCollectionStore
from coincatalog.storage import CollectionStorage, create_storage

logger = logging.getLogger(__name__)


class CatalogApp:
    """
    Args:
        settings: Configuration; defaults to the environment-loaded settings
        storage: Prebuilt storage adapter (otherwise chosen by settings)
        catalog: Catalog data for a storage adapter built here
        credentials: Bearer credential holder shared with the remote client
        transport: httpx transport for the remote client (tests)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        storage: CollectionStorage | None = None,
        catalog: CatalogData | None = None,
        credentials: CredentialStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.storage = storage or create_storage(self.settings, catalog)
        self.credentials = credentials or CredentialStore()
        self.remote = RemoteCollectionClient(
            self.settings.remote_api_url,
            credentials=self.credentials,
            timeout=self.settings.sync_timeout_seconds,
            transport=transport,
        )
        self.sync = SyncCoordinator(
            self.storage,
            self.remote,
            queue_size=self.settings.sync_queue_size,
            workers=self.settings.sync_workers,
        )
        self.catalog = CatalogStore(self.storage)
        self.collection = UserCollectionStore(
            self.storage,
            sync=self.sync,
            user_id=self.credentials.user_id,
        )

    async def start(self) -> None:
        """Open the local store and start background sync."""
        try:
            await self.storage.initialize()
        except SchemaMigrationError as e:
            if not e.fatal:
                raise
            logger.critical("Local store unrecoverable (%s), rebuilding", e.detail)
            await self.storage.rebuild()
        await self.collection.initialize()
        await self.sync.start()

    async def close(self) -> None:
        await self.sync.stop()
        await self.remote.aclose()
        await self.storage.close()

    async def __aenter__(self) -> "CatalogApp":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # --- Session ---

    async def register(self, email: str, password: str, name: str | None = None) -> AuthenticatedUser:
        user = await self.remote.register(email, password, name)
        await self.collection.attach_user(user.id)
        return user

    async def login(self, email: str, password: str) -> AuthenticatedUser:
        """
        Log in and adopt guest records.

        Guest records are claimed for the user and queued for sync.
        """
        user = await self.remote.login(email, password)
        await self.collection.attach_user(user.id)
        return user

    async def logout(self) -> None:
        """Drop the credential. Local records stay; sync pauses until next login."""
        try:
            await self.remote.logout()
        except KnownError as e:
            logger.warning("Remote logout failed: %s", e.message)
        self.collection.user_id = None
