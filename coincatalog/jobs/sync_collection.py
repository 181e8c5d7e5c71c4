"""
Job to push pending collection changes to the remote service.

Logs in with the configured account (if any), pushes every dirty record
in one bulk request, then pulls the merged collection back.
Can be run as a standalone script or called from a scheduler.
"""

import asyncio
import logging

from coincatalog.app import CatalogApp
from coincatalog.config import Settings, settings as default_settings
from coincatalog.models.failure import KnownError
from coincatalog.services.sync_coordinator import SyncReport

logger = logging.getLogger(__name__)


async def run_sync(app: CatalogApp, email: str | None = None, password: str | None = None) -> SyncReport:
    """
    Push and pull one round of changes.

    Args:
        app: Started application
        email: Account to log in with; skipped when already authenticated
        password: Password for `email`

    Returns:
        Report of the push. A failed login reports every pending record as failed.
    """
    if email and password and not app.credentials.is_authenticated:
        try:
            await app.login(email, password)
        except KnownError as e:
            logger.error("Login failed: %s", e.message)
            pending = await app.collection.pending_coins()
            return SyncReport(attempted=len(pending), failed=len(pending))

    await app.sync.join()
    report = await app.sync.push_all()
    pulled = await app.sync.pull()
    logger.info(
        "Sync complete: %d pushed, %d failed, %d pulled",
        report.succeeded,
        report.failed,
        pulled,
    )
    return report


async def run_sync_job(settings: Settings | None = None) -> SyncReport:
    settings = settings or default_settings
    async with CatalogApp(settings) as app:
        return await run_sync(app, settings.sync_email, settings.sync_password)


def main() -> None:
    """CLI entry point for running a collection sync."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_sync_job())


if __name__ == "__main__":
    main()
