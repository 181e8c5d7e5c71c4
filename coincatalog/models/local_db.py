"""
SQLAlchemy ORM models for the embedded local store.

Attribute names mirror the dataclass fields in models.catalog and
models.user_coin so rows convert without a mapping table.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class LocalBase(DeclarativeBase):
    """Base class for local store models."""

    pass


class CountryRow(LocalBase):
    __tablename__ = "countries"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    name_en: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class PeriodRow(LocalBase):
    __tablename__ = "periods"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    country_id: Mapped[str] = mapped_column(String(64), ForeignKey("countries.id"), index=True)
    name: Mapped[str] = mapped_column(String(255))
    name_en: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    end_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)


class RulerRow(LocalBase):
    __tablename__ = "rulers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    period_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("periods.id"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255))
    name_en: Mapped[str | None] = mapped_column(String(255), nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    end_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    birth_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    death_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    succession: Mapped[str | None] = mapped_column(Text, nullable=True)
    coinage: Mapped[str | None] = mapped_column(Text, nullable=True)


class CatalogCoinRow(LocalBase):
    __tablename__ = "catalog_coins"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    ruler_id: Mapped[str] = mapped_column(String(64), ForeignKey("rulers.id"), index=True)
    catalog_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    name: Mapped[str] = mapped_column(String(255))
    name_en: Mapped[str | None] = mapped_column(String(255), nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    denomination: Mapped[str | None] = mapped_column(String(64), nullable=True)
    denomination_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    currency: Mapped[str | None] = mapped_column(String(64), nullable=True)
    metal: Mapped[str | None] = mapped_column(String(64), nullable=True)
    weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    diameter: Mapped[float | None] = mapped_column(Float, nullable=True)
    mint: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mint_mark: Mapped[str | None] = mapped_column(String(32), nullable=True)
    mintage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rarity: Mapped[str | None] = mapped_column(String(32), nullable=True)
    rarity_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    estimated_value_min: Mapped[float | None] = mapped_column(Float, nullable=True)
    estimated_value_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    obverse_image: Mapped[str | None] = mapped_column(Text, nullable=True)
    reverse_image: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    commemorative: Mapped[bool] = mapped_column(Boolean, default=False)

    # Casefolded name/nameEn/catalogNumber/year, filled at seed time
    search_text: Mapped[str] = mapped_column(Text, default="")


class UserCoinRow(LocalBase):
    """
    A user's owned or wishlisted coin.

    Survives schema version bumps: new columns are added in place.
    """

    __tablename__ = "user_coins"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    catalog_coin_id: Mapped[str] = mapped_column(String(128), index=True)
    is_wishlist: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    condition: Mapped[str | None] = mapped_column(String(64), nullable=True)
    grade: Mapped[str | None] = mapped_column(String(64), nullable=True)
    purchase_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    purchase_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_obverse_image: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_reverse_image: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    remote_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    needs_sync: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)

    def __repr__(self) -> str:
        return f"<UserCoinRow(id={self.id}, coin={self.catalog_coin_id})>"


class DbMetadataRow(LocalBase):
    """Key/value metadata; holds the schema `version`."""

    __tablename__ = "db_metadata"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)


# Dropped and reseeded on a schema version bump, in dependency order
REFERENCE_TABLES = (
    CatalogCoinRow.__table__,
    RulerRow.__table__,
    PeriodRow.__table__,
    CountryRow.__table__,
)
