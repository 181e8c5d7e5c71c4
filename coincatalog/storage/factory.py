"""Configuration-selected storage adapter."""

import logging
from pathlib import Path

from coincatalog.config import Settings
from coincatalog.services.catalog_data import CatalogData, get_catalog_data, load_catalog_data
from coincatalog.storage.base import CollectionStorage
from coincatalog.storage.memory import MemoryStorage
from coincatalog.storage.sql import SqlStorage

logger = logging.getLogger(__name__)


def create_storage(settings: Settings, catalog: CatalogData | None = None) -> CollectionStorage:
    """
    Build the storage adapter named by `settings.storage_backend`.

    The catalog defaults to `settings.catalog_path`, then the packaged file.
    """
    if catalog is None:
        if settings.catalog_path:
            catalog = load_catalog_data(Path(settings.catalog_path))
        else:
            catalog = get_catalog_data()

    if settings.storage_backend == "memory":
        snapshot = Path(settings.snapshot_path) if settings.snapshot_path else None
        logger.info("Using memory storage (snapshot: %s)", snapshot)
        return MemoryStorage(catalog, snapshot_path=snapshot)

    logger.info("Using SQL storage at %s", settings.local_database_url)
    return SqlStorage(catalog, database_url=settings.local_database_url, echo=settings.debug)
