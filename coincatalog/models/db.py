"""
SQLAlchemy ORM models for the remote collection service.

Separate metadata from the local store models: the server persists users
and their synced collection records, never the reference catalog.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all server ORM models."""

    pass


class UserDB(Base):
    __tablename__ = "users"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<UserDB(id={self.id}, email={self.email})>"


class RemoteUserCoinDB(Base):
    """
    A user's synced collection record.

    One row per (user, catalog coin): the same row flips between owned and
    wishlisted. Deletion is soft (deleted_at) so it can be reported back.
    """

    __tablename__ = "user_coins"
    __table_args__ = (UniqueConstraint("user_id", "catalog_coin_id", name="uq_user_catalog_coin"),)
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    catalog_coin_id: Mapped[str] = mapped_column(String(128), index=True)
    local_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_wishlist: Mapped[bool] = mapped_column(Boolean, default=False)

    condition: Mapped[str | None] = mapped_column(String(64), nullable=True)
    grade: Mapped[str | None] = mapped_column(String(64), nullable=True)
    purchase_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    purchase_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_obverse_image: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_reverse_image: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_value: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Client-side updatedAt of the write that produced this state
    client_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<RemoteUserCoinDB(user={self.user_id}, coin={self.catalog_coin_id})>"
