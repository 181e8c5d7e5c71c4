"""
UserCoin: a user's owned-or-wishlisted relation to one catalog coin.

This is the mutable record at the centre of the local-first layer. Every
local mutation marks it dirty (needs_sync=True); only a confirmed server
round trip clears the flag.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from coincatalog.models.catalog import CatalogCoin, camel_case
from coincatalog.models.failure import ValidationError

# Fields a user may edit through a partial update
EDITABLE_FIELDS = frozenset(
    {
        "condition",
        "grade",
        "purchase_price",
        "purchase_date",
        "notes",
        "user_obverse_image",
        "user_reverse_image",
        "current_value",
    }
)

# Fields the server is authoritative for once a record is synced
MERGEABLE_FIELDS = EDITABLE_FIELDS | {"is_wishlist"}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_user_coin_id() -> str:
    """Generate a client-side id that stays stable across sync."""
    return f"uc_{uuid.uuid4().hex}"


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(slots=True)
class Membership:
    """Collection badges for one catalog coin."""

    owned: bool = False
    wishlisted: bool = False


@dataclass
class UserCoin:
    """
    A user's record of a catalog coin.

    Attributes:
        id: Client-generated id, stable across sync
        user_id: Owner, None until the user authenticates
        is_wishlist: Wishlisted (True) or owned (False), never both
        current_value: User's own valuation, overrides the catalog estimate
        remote_id: Server id, set once the server acknowledged the record
        synced_at: Last confirmed server acknowledgment, None if never synced
        needs_sync: Set on every local mutation, cleared on confirmed sync
        is_deleted: Soft-delete flag, kept until the deletion is synced
        catalog_coin: Joined catalog entry, populated by list reads only
    """

    catalog_coin_id: str
    id: str = field(default_factory=new_user_coin_id)
    user_id: str | None = None
    is_wishlist: bool = False
    condition: str | None = None
    grade: str | None = None
    purchase_price: float | None = None
    purchase_date: str | None = None
    notes: str | None = None
    user_obverse_image: str | None = None
    user_reverse_image: str | None = None
    current_value: float | None = None
    remote_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None
    synced_at: datetime | None = None
    needs_sync: bool = True
    is_deleted: bool = False
    catalog_coin: CatalogCoin | None = field(default=None, compare=False)

    def validate(self) -> None:
        """Raise ValidationError if required fields are missing."""
        if not self.catalog_coin_id or not str(self.catalog_coin_id).strip():
            raise ValidationError("catalogCoinId required")
        if self.purchase_price is not None and self.purchase_price < 0:
            raise ValidationError("purchasePrice must not be negative")

    @property
    def is_live(self) -> bool:
        return not self.is_deleted

    @property
    def version(self) -> tuple[datetime | None, bool, bool]:
        """Fields every local mutation or acknowledgment changes."""
        return (self.updated_at, self.is_deleted, self.needs_sync)

    def update(self, now: datetime | None = None, **changes: Any) -> None:
        """
        Apply a partial update.

        Only supplied fields are overwritten. Always touches updated_at and
        marks the record dirty, even for an empty update.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                "Unknown fields in update",
                detail=", ".join(sorted(unknown)),
            )
        for name, value in changes.items():
            setattr(self, name, value)
        self.validate()
        self.mark_for_sync(now)

    def mark_for_sync(self, now: datetime | None = None) -> None:
        self.updated_at = now or utcnow()
        self.needs_sync = True

    def mark_as_deleted(self, now: datetime | None = None) -> None:
        self.is_deleted = True
        self.mark_for_sync(now)

    def mark_as_synced(self, now: datetime | None = None, remote_id: str | None = None) -> None:
        self.synced_at = now or utcnow()
        self.needs_sync = False
        if remote_id is not None:
            self.remote_id = remote_id

    def snapshot(self) -> "UserCoin":
        """Detached copy used by the sync queue."""
        return replace(self, catalog_coin=None)

    def merge_from_server(self, server: dict[str, Any]) -> None:
        """Fold server-authoritative mutable fields into this record."""
        for name in MERGEABLE_FIELDS:
            key = camel_case(name)
            if key in server:
                setattr(self, name, server[key])

    def to_server_format(self) -> dict[str, Any]:
        """Wire representation sent to the remote collection service."""
        return {
            "localId": self.id,
            "catalogCoinId": self.catalog_coin_id,
            "isWishlist": self.is_wishlist,
            "condition": self.condition,
            "grade": self.grade,
            "purchasePrice": self.purchase_price,
            "purchaseDate": self.purchase_date,
            "notes": self.notes,
            "userObverseImage": self.user_obverse_image,
            "userReverseImage": self.user_reverse_image,
            "currentValue": self.current_value,
            "updatedAt": _format_datetime(self.updated_at or self.created_at),
            "isDeleted": self.is_deleted,
        }

    @classmethod
    def from_server(cls, server: dict[str, Any]) -> "UserCoin":
        """Build a clean local record from a server record."""
        coin = cls(
            catalog_coin_id=server["catalogCoinId"],
            id=server.get("localId") or new_user_coin_id(),
            user_id=server.get("userId"),
            remote_id=server.get("id"),
            created_at=_parse_datetime(server.get("createdAt")) or utcnow(),
            updated_at=_parse_datetime(server.get("updatedAt")),
            synced_at=_parse_datetime(server.get("syncedAt")) or utcnow(),
            needs_sync=False,
        )
        coin.merge_from_server(server)
        return coin

    def to_record(self) -> dict[str, Any]:
        """Flat representation used by storage snapshots."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "catalogCoinId": self.catalog_coin_id,
            "isWishlist": self.is_wishlist,
            "condition": self.condition,
            "grade": self.grade,
            "purchasePrice": self.purchase_price,
            "purchaseDate": self.purchase_date,
            "notes": self.notes,
            "userObverseImage": self.user_obverse_image,
            "userReverseImage": self.user_reverse_image,
            "currentValue": self.current_value,
            "remoteId": self.remote_id,
            "createdAt": _format_datetime(self.created_at),
            "updatedAt": _format_datetime(self.updated_at),
            "syncedAt": _format_datetime(self.synced_at),
            "needsSync": self.needs_sync,
            "isDeleted": self.is_deleted,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "UserCoin":
        return cls(
            id=record["id"],
            user_id=record.get("userId"),
            catalog_coin_id=record["catalogCoinId"],
            is_wishlist=bool(record.get("isWishlist", False)),
            condition=record.get("condition"),
            grade=record.get("grade"),
            purchase_price=record.get("purchasePrice"),
            purchase_date=record.get("purchaseDate"),
            notes=record.get("notes"),
            user_obverse_image=record.get("userObverseImage"),
            user_reverse_image=record.get("userReverseImage"),
            current_value=record.get("currentValue"),
            remote_id=record.get("remoteId"),
            created_at=_parse_datetime(record.get("createdAt")) or utcnow(),
            updated_at=_parse_datetime(record.get("updatedAt")),
            synced_at=_parse_datetime(record.get("syncedAt")),
            needs_sync=bool(record.get("needsSync", False)),
            is_deleted=bool(record.get("isDeleted", False)),
        )

