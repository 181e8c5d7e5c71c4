"""
Collection API endpoints.

Stores the synced copy of each user's collection and wishlist. Every
endpoint requires a bearer token and only touches the caller's rows.
"""

from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from coincatalog.api.deps import CurrentUserId
from coincatalog.api.schemas import CamelModel
from coincatalog.config import settings
from coincatalog.db import (
    get_collection_stats,
    get_live_user_coin,
    list_user_coins,
    soft_delete_user_coin,
    sync_user_coins,
    update_user_coin,
    upsert_user_coin,
)
from coincatalog.db.database import get_session
from coincatalog.models.db import RemoteUserCoinDB
from coincatalog.models.failure import NotFoundError, ValidationError

router = APIRouter(prefix="/collection", tags=["collection"])


class UserCoinWrite(CamelModel):
    """A client record, full (upsert/sync) or partial (update)."""

    catalog_coin_id: str | None = None
    local_id: str | None = None
    is_wishlist: bool | None = None
    condition: str | None = None
    grade: str | None = None
    purchase_price: float | None = None
    purchase_date: str | None = None
    notes: str | None = None
    user_obverse_image: str | None = None
    user_reverse_image: str | None = None
    current_value: float | None = None
    updated_at: datetime | None = Field(
        default=None,
        description="Client-side time of the change; older writes are ignored",
    )
    is_deleted: bool = False

    def fields(self) -> dict[str, Any]:
        """Writable fields the client actually sent."""
        data = self.model_dump(exclude_unset=True)
        if data.get("is_wishlist") is None:
            data.pop("is_wishlist", None)
        return data


class UserCoinResponse(CamelModel):
    id: str
    user_id: str
    catalog_coin_id: str
    local_id: str | None = None
    is_wishlist: bool = False
    condition: str | None = None
    grade: str | None = None
    purchase_price: float | None = None
    purchase_date: str | None = None
    notes: str | None = None
    user_obverse_image: str | None = None
    user_reverse_image: str | None = None
    current_value: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    synced_at: datetime | None = None
    is_deleted: bool = False


class SyncRequest(BaseModel):
    coins: list[UserCoinWrite] = Field(default_factory=list)


class DeleteResponse(BaseModel):
    success: bool = True
    deleted: bool = Field(
        default=False,
        description="False when there was no live row or the delete was stale",
    )


class CollectionStatsResponse(CamelModel):
    collection_count: int = 0
    wishlist_count: int = 0
    total_spent: float = 0.0
    avg_price: float = 0.0


def coin_response(row: RemoteUserCoinDB) -> UserCoinResponse:
    return UserCoinResponse(
        id=row.id,
        user_id=row.user_id,
        catalog_coin_id=row.catalog_coin_id,
        local_id=row.local_id,
        is_wishlist=bool(row.is_wishlist),
        condition=row.condition,
        grade=row.grade,
        purchase_price=row.purchase_price,
        purchase_date=row.purchase_date,
        notes=row.notes,
        user_obverse_image=row.user_obverse_image,
        user_reverse_image=row.user_reverse_image,
        current_value=row.current_value,
        created_at=row.created_at,
        updated_at=row.client_updated_at or row.updated_at,
        synced_at=row.synced_at,
        is_deleted=row.deleted_at is not None,
    )


def _require_catalog_id(coin: UserCoinWrite) -> str:
    if not coin.catalog_coin_id or not coin.catalog_coin_id.strip():
        raise ValidationError("catalogCoinId required")
    return coin.catalog_coin_id


@router.get("", response_model=list[UserCoinResponse])
async def get_collection(
    user_id: CurrentUserId,
    session: Annotated[AsyncSession, Depends(get_session)],
    is_wishlist: Annotated[bool, Query(alias="isWishlist")] = False,
) -> list[UserCoinResponse]:
    """Live records of the caller, collection or wishlist."""
    rows = await list_user_coins(session, user_id, is_wishlist=is_wishlist)
    return [coin_response(row) for row in rows]


@router.get("/stats", response_model=CollectionStatsResponse)
async def get_stats(
    user_id: CurrentUserId,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CollectionStatsResponse:
    stats = await get_collection_stats(session, user_id)
    return CollectionStatsResponse(**stats)


@router.post("", response_model=UserCoinResponse)
async def upsert_coin(
    request: UserCoinWrite,
    user_id: CurrentUserId,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> UserCoinResponse:
    """
    Create or merge the caller's record for a catalog coin.

    The response is the stored state, which differs from the request when
    the write was stale or targeted a record deleted elsewhere.
    """
    catalog_coin_id = _require_catalog_id(request)
    row = await upsert_user_coin(
        session,
        user_id,
        catalog_coin_id,
        request.fields(),
        local_id=request.local_id,
        client_updated_at=request.updated_at,
        reject_stale=settings.reject_stale_writes,
    )
    return coin_response(row)


@router.post("/sync", response_model=list[UserCoinResponse])
async def sync_collection(
    request: SyncRequest,
    user_id: CurrentUserId,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[UserCoinResponse]:
    """Apply a batch of client records and return the merged live collection."""
    batch = []
    for coin in request.coins:
        entry = coin.fields()
        entry["catalog_coin_id"] = _require_catalog_id(coin)
        entry["client_updated_at"] = coin.updated_at
        entry["is_deleted"] = coin.is_deleted
        batch.append(entry)

    rows = await sync_user_coins(
        session, user_id, batch, reject_stale=settings.reject_stale_writes
    )
    return [coin_response(row) for row in rows]


@router.put("/{coin_id}", response_model=UserCoinResponse)
async def update_coin(
    coin_id: str,
    request: UserCoinWrite,
    user_id: CurrentUserId,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> UserCoinResponse:
    """Partial update by server id. 404 for missing, deleted or foreign rows."""
    row = await get_live_user_coin(session, user_id, coin_id)
    if row is None:
        raise NotFoundError("User coin", coin_id)
    row = await update_user_coin(
        session,
        row,
        request.fields(),
        client_updated_at=request.updated_at,
        reject_stale=settings.reject_stale_writes,
    )
    return coin_response(row)


@router.delete("/{catalog_coin_id}", response_model=DeleteResponse)
async def delete_coin(
    catalog_coin_id: str,
    user_id: CurrentUserId,
    session: Annotated[AsyncSession, Depends(get_session)],
    updated_at: Annotated[datetime | None, Query(alias="updatedAt")] = None,
    local_id: Annotated[str | None, Query(alias="localId")] = None,
) -> DeleteResponse:
    """
    Soft-delete the caller's record for a catalog coin. Idempotent.

    With `localId` the row is only deleted while it still belongs to that
    client record.
    """
    deleted = await soft_delete_user_coin(
        session,
        user_id,
        catalog_coin_id,
        client_updated_at=updated_at,
        reject_stale=settings.reject_stale_writes,
        local_id=local_id,
    )
    return DeleteResponse(deleted=deleted)
