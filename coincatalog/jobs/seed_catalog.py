"""
Job to initialise or migrate the local store.

Creates missing tables, reseeds the reference catalog when the schema
version changed, and reports what the store holds afterwards.
"""

import asyncio
import logging

from coincatalog.config import Settings, settings as default_settings
from coincatalog.models.failure import SchemaMigrationError
from coincatalog.storage import CollectionStorage, create_storage

logger = logging.getLogger(__name__)


async def seed_storage(storage: CollectionStorage) -> dict[str, int]:
    """
    Initialise `storage` and count its contents.

    A migration whose rollback failed triggers a rebuild.

    Returns:
        Dict with counts of rulers, catalog coins and user coins
    """
    try:
        await storage.initialize()
    except SchemaMigrationError as e:
        if not e.fatal:
            raise
        logger.critical("Migration rollback failed, rebuilding: %s", e.detail)
        await storage.rebuild()

    rulers = await storage.list_rulers()
    coins = 0
    for ruler in rulers:
        coins += len(await storage.list_coins_by_ruler(ruler.id))
    user_coins = len(await storage.list_all_user_coins())

    counts = {"rulers": len(rulers), "coins": coins, "user_coins": user_coins}
    logger.info(
        "Local store ready: %d rulers, %d catalog coins, %d user coins",
        counts["rulers"],
        counts["coins"],
        counts["user_coins"],
    )
    return counts


async def run_seed(settings: Settings | None = None) -> dict[str, int]:
    storage = create_storage(settings or default_settings)
    try:
        return await seed_storage(storage)
    finally:
        await storage.close()


def main() -> None:
    """CLI entry point for seeding the local store."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_seed())


if __name__ == "__main__":
    main()
