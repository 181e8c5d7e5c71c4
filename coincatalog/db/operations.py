"""
Database CRUD operations for the remote collection service.

Every collection operation is scoped to one user id. Writes are merged
into the single row per (user, catalog coin) with last-writer-wins on the
mutable fields.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import false, func, select, true
from sqlalchemy.ext.asyncio import AsyncSession

from coincatalog.models.db import RemoteUserCoinDB, UserDB

logger = logging.getLogger(__name__)

# Fields a client write may set on a collection row
WRITABLE_FIELDS = (
    "is_wishlist",
    "condition",
    "grade",
    "purchase_price",
    "purchase_date",
    "notes",
    "user_obverse_image",
    "user_reverse_image",
    "current_value",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_stale(row: RemoteUserCoinDB, client_updated_at: datetime | None) -> bool:
    """True if the stored state was written by a newer client change."""
    stored = _aware(row.client_updated_at)
    incoming = _aware(client_updated_at)
    if stored is None or incoming is None:
        return False
    return incoming < stored


# --- User Operations ---


async def get_user(session: AsyncSession, user_id: str) -> UserDB | None:
    return await session.get(UserDB, user_id)


async def get_user_by_email(session: AsyncSession, email: str) -> UserDB | None:
    result = await session.execute(select(UserDB).where(UserDB.email == email.lower()))
    return result.scalar_one_or_none()


async def create_user(
    session: AsyncSession,
    email: str,
    password_hash: str,
    name: str | None = None,
) -> UserDB:
    """
    Create a user.

    Raises IntegrityError if the email is already registered.
    """
    user = UserDB(email=email.lower(), password_hash=password_hash, name=name)
    session.add(user)
    await session.flush()
    return user


async def record_login(session: AsyncSession, user: UserDB) -> None:
    user.last_login = _utcnow()
    await session.flush()


# --- Collection Operations ---


async def list_user_coins(
    session: AsyncSession,
    user_id: str,
    is_wishlist: bool | None = None,
) -> list[RemoteUserCoinDB]:
    """Live rows of a user, newest first."""
    stmt = select(RemoteUserCoinDB).where(
        RemoteUserCoinDB.user_id == user_id,
        RemoteUserCoinDB.deleted_at.is_(None),
    )
    if is_wishlist is not None:
        stmt = stmt.where(RemoteUserCoinDB.is_wishlist == is_wishlist)
    result = await session.execute(stmt.order_by(RemoteUserCoinDB.created_at.desc()))
    return list(result.scalars().all())


async def get_user_coin_by_catalog_id(
    session: AsyncSession,
    user_id: str,
    catalog_coin_id: str,
) -> RemoteUserCoinDB | None:
    """Row for (user, catalog coin), deleted or not."""
    result = await session.execute(
        select(RemoteUserCoinDB).where(
            RemoteUserCoinDB.user_id == user_id,
            RemoteUserCoinDB.catalog_coin_id == catalog_coin_id,
        )
    )
    return result.scalar_one_or_none()


async def get_live_user_coin(
    session: AsyncSession,
    user_id: str,
    coin_id: str,
) -> RemoteUserCoinDB | None:
    """Live row by server id. Rows of other users are reported as missing."""
    row = await session.get(RemoteUserCoinDB, coin_id)
    if row is None or row.user_id != user_id or row.deleted_at is not None:
        return None
    return row


def _apply(row: RemoteUserCoinDB, fields: dict[str, Any]) -> None:
    for name in WRITABLE_FIELDS:
        if name in fields:
            setattr(row, name, fields[name])


async def upsert_user_coin(
    session: AsyncSession,
    user_id: str,
    catalog_coin_id: str,
    fields: dict[str, Any],
    local_id: str | None = None,
    client_updated_at: datetime | None = None,
    reject_stale: bool = True,
) -> RemoteUserCoinDB:
    """
    Create or merge the row for (user, catalog coin).

    - A write older than the stored client timestamp is ignored when
      `reject_stale` is set; the stored row is returned unchanged.
    - A soft-deleted row is not resurrected by a write from the same client
      record (same local_id); that write is ignored and the deleted row is
      returned. A write from another client record revives it.
    """
    now = _utcnow()
    row = await get_user_coin_by_catalog_id(session, user_id, catalog_coin_id)

    if row is None:
        row = RemoteUserCoinDB(
            user_id=user_id,
            catalog_coin_id=catalog_coin_id,
            local_id=local_id,
            client_updated_at=client_updated_at,
            synced_at=now,
        )
        _apply(row, fields)
        session.add(row)
        await session.flush()
        return row

    if reject_stale and is_stale(row, client_updated_at):
        logger.info(
            "Ignoring stale write for %s/%s (%s < %s)",
            user_id,
            catalog_coin_id,
            client_updated_at,
            row.client_updated_at,
        )
        return row

    if row.deleted_at is not None:
        if local_id is not None and local_id == row.local_id:
            logger.info("Not resurrecting deleted %s/%s", user_id, catalog_coin_id)
            return row
        row.deleted_at = None

    _apply(row, fields)
    if local_id is not None:
        row.local_id = local_id
    if client_updated_at is not None:
        row.client_updated_at = client_updated_at
    row.updated_at = now
    row.synced_at = now
    await session.flush()
    return row


async def update_user_coin(
    session: AsyncSession,
    row: RemoteUserCoinDB,
    fields: dict[str, Any],
    client_updated_at: datetime | None = None,
    reject_stale: bool = True,
) -> RemoteUserCoinDB:
    """Partial update of a live row. Only keys present in `fields` change."""
    if reject_stale and is_stale(row, client_updated_at):
        return row
    now = _utcnow()
    _apply(row, fields)
    if client_updated_at is not None:
        row.client_updated_at = client_updated_at
    row.updated_at = now
    row.synced_at = now
    await session.flush()
    return row


async def soft_delete_user_coin(
    session: AsyncSession,
    user_id: str,
    catalog_coin_id: str,
    client_updated_at: datetime | None = None,
    reject_stale: bool = True,
    local_id: str | None = None,
) -> bool:
    """
    Soft-delete the row for (user, catalog coin).

    Returns True if a live row was deleted. Deleting a missing or already
    deleted row is a no-op, so retried deletions succeed. A delete carrying
    `local_id` skips a row that another client record has since taken over.
    """
    row = await get_user_coin_by_catalog_id(session, user_id, catalog_coin_id)
    if row is None or row.deleted_at is not None:
        return False
    if local_id is not None and row.local_id is not None and row.local_id != local_id:
        logger.info(
            "Ignoring delete of %s/%s from %s, row belongs to %s",
            user_id,
            catalog_coin_id,
            local_id,
            row.local_id,
        )
        return False
    if reject_stale and is_stale(row, client_updated_at):
        logger.info("Ignoring stale delete for %s/%s", user_id, catalog_coin_id)
        return False

    now = _utcnow()
    row.deleted_at = now
    row.updated_at = now
    row.synced_at = now
    if client_updated_at is not None:
        row.client_updated_at = client_updated_at
    await session.flush()
    return True


async def sync_user_coins(
    session: AsyncSession,
    user_id: str,
    coins: list[dict[str, Any]],
    reject_stale: bool = True,
) -> list[RemoteUserCoinDB]:
    """
    Apply a batch of client records and return the merged live collection.

    Each entry holds `catalog_coin_id`, `local_id`, `client_updated_at`,
    `is_deleted` and the writable fields.
    """
    for coin in coins:
        if coin.get("is_deleted"):
            await soft_delete_user_coin(
                session,
                user_id,
                coin["catalog_coin_id"],
                client_updated_at=coin.get("client_updated_at"),
                reject_stale=reject_stale,
                local_id=coin.get("local_id"),
            )
        else:
            await upsert_user_coin(
                session,
                user_id,
                coin["catalog_coin_id"],
                coin,
                local_id=coin.get("local_id"),
                client_updated_at=coin.get("client_updated_at"),
                reject_stale=reject_stale,
            )
    logger.info("Synced %d record(s) for user %s", len(coins), user_id)
    return await list_user_coins(session, user_id)


async def get_collection_stats(session: AsyncSession, user_id: str) -> dict[str, float | int]:
    """Counts and purchase totals over a user's live rows."""
    live = RemoteUserCoinDB.deleted_at.is_(None)
    owned = RemoteUserCoinDB.is_wishlist == false()

    result = await session.execute(
        select(
            func.count().filter(owned),
            func.count().filter(RemoteUserCoinDB.is_wishlist == true()),
            func.coalesce(func.sum(RemoteUserCoinDB.purchase_price).filter(owned), 0),
            func.coalesce(func.avg(RemoteUserCoinDB.purchase_price).filter(owned), 0),
        ).where(RemoteUserCoinDB.user_id == user_id, live)
    )
    collection_count, wishlist_count, total_spent, avg_price = result.one()
    return {
        "collection_count": int(collection_count),
        "wishlist_count": int(wishlist_count),
        "total_spent": float(total_spent),
        "avg_price": float(avg_price),
    }
