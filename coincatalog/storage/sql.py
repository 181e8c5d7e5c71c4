"""
Embedded relational storage adapter.

Async SQLAlchemy over aiosqlite. On initialize the store:

1. creates missing tables (user_coins included),
2. adds columns missing from an older user_coins table,
3. drops and reseeds the reference tables when the stored schema version
   is older than SCHEMA_VERSION.

Step 3 runs in one transaction and never touches user_coins.
"""

import logging
from dataclasses import fields
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    Connection,
    delete,
    event,
    false,
    func,
    insert,
    inspect,
    select,
    text,
    true,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from coincatalog.config import SCHEMA_VERSION
from coincatalog.models.catalog import CatalogCoin, Country, Period, Ruler
from coincatalog.models.failure import SchemaMigrationError
from coincatalog.models.local_db import (
    REFERENCE_TABLES,
    CatalogCoinRow,
    CountryRow,
    DbMetadataRow,
    LocalBase,
    PeriodRow,
    RulerRow,
    UserCoinRow,
)
from coincatalog.models.user_coin import UserCoin
from coincatalog.services.catalog_data import CatalogData
from coincatalog.storage.base import CollectionStorage

logger = logging.getLogger(__name__)

VERSION_KEY = "version"

_USER_COIN_FIELDS = tuple(f.name for f in fields(UserCoin) if f.name != "catalog_coin")
_CATALOG_COIN_COLUMNS = tuple(
    f.name for f in fields(CatalogCoin) if f.name not in ("ruler_name", "ruler_name_en")
)


def _on_connect(dbapi_connection: Any, _record: Any) -> None:
    dbapi_connection.isolation_level = None


def _on_begin(conn: Connection) -> None:
    conn.exec_driver_sql("BEGIN")


def _enable_transactional_ddl(engine: AsyncEngine) -> None:
    """
    Let pysqlite run DDL inside the migration transaction.

    The sqlite3 driver only opens transactions for DML; emitting BEGIN
    ourselves makes DROP/CREATE roll back with the seed inserts.
    """
    sync_engine = engine.sync_engine
    if event.contains(sync_engine, "begin", _on_begin):
        return
    event.listen(sync_engine, "connect", _on_connect)
    event.listen(sync_engine, "begin", _on_begin)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo; stored values are always UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _row_values(record: Any, names: tuple[str, ...]) -> dict[str, Any]:
    return {name: getattr(record, name) for name in names}


def _user_coin_from_row(row: UserCoinRow) -> UserCoin:
    values = _row_values(row, _USER_COIN_FIELDS)
    for name in ("created_at", "updated_at", "synced_at"):
        values[name] = _aware(values[name])
    return UserCoin(**values)


def _catalog_coin_from_row(row: CatalogCoinRow, ruler: RulerRow | None = None) -> CatalogCoin:
    return CatalogCoin(
        **_row_values(row, _CATALOG_COIN_COLUMNS),
        ruler_name=ruler.name if ruler else None,
        ruler_name_en=ruler.name_en if ruler else None,
    )


def _ruler_from_row(row: RulerRow) -> Ruler:
    return Ruler(**_row_values(row, tuple(f.name for f in fields(Ruler))))


class SqlStorage(CollectionStorage):
    def __init__(
        self,
        catalog: CatalogData,
        database_url: str | None = None,
        engine: AsyncEngine | None = None,
        echo: bool = False,
    ) -> None:
        if engine is None:
            if database_url is None:
                raise ValueError("SqlStorage needs a database_url or an engine")
            engine = create_async_engine(database_url, echo=echo)
        if engine.dialect.name == "sqlite":
            _enable_transactional_ddl(engine)

        self._catalog = catalog
        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    # --- Lifecycle ---

    async def initialize(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(LocalBase.metadata.create_all)
            await conn.run_sync(self._add_missing_user_coin_columns)

        current = await self.get_schema_version()
        if current < SCHEMA_VERSION:
            await self.migrate(current, SCHEMA_VERSION)

    async def close(self) -> None:
        await self._engine.dispose()

    @staticmethod
    def _add_missing_user_coin_columns(conn: Connection) -> None:
        existing = {col["name"] for col in inspect(conn).get_columns(UserCoinRow.__tablename__)}
        for column in UserCoinRow.__table__.columns:
            if column.name in existing:
                continue
            column_type = column.type.compile(dialect=conn.dialect)
            logger.info("Adding column user_coins.%s (%s)", column.name, column_type)
            conn.execute(
                text(f"ALTER TABLE {UserCoinRow.__tablename__} ADD COLUMN {column.name} {column_type}")
            )

    # --- Schema version / migration ---

    async def get_schema_version(self) -> int:
        async with self._session_factory() as session:
            value = await session.scalar(
                select(DbMetadataRow.value).where(DbMetadataRow.key == VERSION_KEY)
            )
        try:
            return int(value) if value is not None else 0
        except ValueError:
            return 0

    async def migrate(self, from_version: int, to_version: int) -> None:
        """
        Drop and reseed the reference tables, then record the new version.

        Raises:
            SchemaMigrationError: The migration was rolled back. `fatal` is
                set when the rollback itself failed.
        """
        logger.info("Migrating local store from v%d to v%d", from_version, to_version)

        async with self._engine.connect() as conn:
            trans = await conn.begin()
            try:
                await self._rebuild_reference_tables(conn, to_version)
                await trans.commit()
            except SQLAlchemyError as e:
                try:
                    await trans.rollback()
                except SQLAlchemyError as rollback_error:
                    logger.critical("Rollback of migration failed: %s", rollback_error)
                    raise SchemaMigrationError(
                        from_version, to_version, str(rollback_error), fatal=True
                    ) from rollback_error
                logger.error("Migration to v%d rolled back: %s", to_version, e)
                raise SchemaMigrationError(from_version, to_version, str(e)) from e

        logger.info("Local store at v%d", to_version)

    async def rebuild(self) -> None:
        """
        Recreate the store after a failed rollback.

        Reference tables and metadata are recreated from the catalog.
        user_coins is kept unless it can no longer be read.
        """
        logger.warning("Rebuilding local store from scratch")
        async with self._engine.begin() as conn:
            try:
                await conn.execute(select(func.count()).select_from(UserCoinRow))
                keep = [UserCoinRow.__table__]
            except SQLAlchemyError as e:
                logger.error("user_coins unreadable, recreating it: %s", e)
                keep = []
            doomed = [t for t in LocalBase.metadata.sorted_tables if t not in keep]
            await conn.run_sync(LocalBase.metadata.drop_all, tables=doomed)
            await conn.run_sync(LocalBase.metadata.create_all)
            await self._seed(conn, SCHEMA_VERSION)

    async def _rebuild_reference_tables(self, conn: AsyncConnection, version: int) -> None:
        tables = list(REFERENCE_TABLES)
        await conn.run_sync(LocalBase.metadata.drop_all, tables=tables)
        await conn.run_sync(LocalBase.metadata.create_all, tables=tables)
        await self._seed(conn, version)

    async def _seed(self, conn: AsyncConnection, version: int) -> None:
        catalog = self._catalog
        if catalog.countries:
            await conn.execute(
                insert(CountryRow),
                [_row_values(c, tuple(f.name for f in fields(Country))) for c in catalog.countries],
            )
        if catalog.periods:
            await conn.execute(
                insert(PeriodRow),
                [_row_values(p, tuple(f.name for f in fields(Period))) for p in catalog.periods],
            )
        if catalog.rulers:
            await conn.execute(
                insert(RulerRow),
                [_row_values(r, tuple(f.name for f in fields(Ruler))) for r in catalog.rulers],
            )
        if catalog.coins:
            await conn.execute(
                insert(CatalogCoinRow),
                [
                    {**_row_values(c, _CATALOG_COIN_COLUMNS), "search_text": c.search_text()}
                    for c in catalog.coins
                ],
            )

        await conn.execute(delete(DbMetadataRow).where(DbMetadataRow.key == VERSION_KEY))
        await conn.execute(insert(DbMetadataRow).values(key=VERSION_KEY, value=str(version)))
        logger.info(
            "Seeded %d rulers and %d catalog coins", len(catalog.rulers), len(catalog.coins)
        )

    # --- Reference catalog ---

    async def list_countries(self) -> list[Country]:
        async with self._session_factory() as session:
            rows = await session.scalars(select(CountryRow).order_by(CountryRow.id))
            return [Country(**_row_values(r, tuple(f.name for f in fields(Country)))) for r in rows]

    async def list_periods_by_country(self, country_id: str) -> list[Period]:
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(PeriodRow)
                .where(PeriodRow.country_id == country_id)
                .order_by(PeriodRow.sort_order.asc())
            )
            return [Period(**_row_values(r, tuple(f.name for f in fields(Period)))) for r in rows]

    async def list_rulers(self, period_id: str | None = None) -> list[Ruler]:
        stmt = select(RulerRow).order_by(RulerRow.sort_order.asc())
        if period_id is not None:
            stmt = stmt.where(RulerRow.period_id == period_id)
        async with self._session_factory() as session:
            rows = await session.scalars(stmt)
            return [_ruler_from_row(r) for r in rows]

    async def get_ruler(self, ruler_id: str) -> Ruler | None:
        async with self._session_factory() as session:
            row = await session.get(RulerRow, ruler_id)
            return _ruler_from_row(row) if row else None

    async def list_coins_by_ruler(self, ruler_id: str) -> list[CatalogCoin]:
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(CatalogCoinRow)
                .where(CatalogCoinRow.ruler_id == ruler_id)
                .order_by(
                    CatalogCoinRow.year.asc(),
                    func.coalesce(CatalogCoinRow.denomination_value, 0).desc(),
                )
            )
            return [_catalog_coin_from_row(r) for r in rows]

    async def get_coin(self, coin_id: str) -> CatalogCoin | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CatalogCoinRow, RulerRow)
                .outerjoin(RulerRow, CatalogCoinRow.ruler_id == RulerRow.id)
                .where(CatalogCoinRow.id == coin_id)
            )
            row = result.first()
            if row is None:
                return None
            coin_row, ruler_row = row
            return _catalog_coin_from_row(coin_row, ruler_row)

    async def search_coins(self, query: str, limit: int) -> list[CatalogCoin]:
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(CatalogCoinRow)
                .where(CatalogCoinRow.search_text.contains(query.casefold(), autoescape=True))
                .order_by(CatalogCoinRow.year.asc())
                .limit(limit)
            )
            return [_catalog_coin_from_row(r) for r in rows]

    # --- User coins ---

    async def insert_user_coin(self, coin: UserCoin) -> None:
        async with self._session_factory() as session:
            session.add(UserCoinRow(**_row_values(coin, _USER_COIN_FIELDS)))
            await session.commit()

    async def save_user_coin(self, coin: UserCoin) -> None:
        async with self._session_factory() as session:
            row = await session.get(UserCoinRow, coin.id)
            if row is None:
                session.add(UserCoinRow(**_row_values(coin, _USER_COIN_FIELDS)))
            else:
                for name, value in _row_values(coin, _USER_COIN_FIELDS).items():
                    setattr(row, name, value)
            await session.commit()

    @staticmethod
    def _unchanged(expected: UserCoin) -> list[Any]:
        if expected.updated_at is None:
            updated_at = UserCoinRow.updated_at.is_(None)
        else:
            updated_at = UserCoinRow.updated_at == expected.updated_at
        return [
            UserCoinRow.id == expected.id,
            updated_at,
            UserCoinRow.is_deleted == expected.is_deleted,
            UserCoinRow.needs_sync == expected.needs_sync,
        ]

    async def save_user_coin_if_unchanged(self, coin: UserCoin, expected: UserCoin) -> bool:
        values = _row_values(coin, _USER_COIN_FIELDS)
        values.pop("id")
        async with self._session_factory() as session:
            result = await session.execute(
                update(UserCoinRow).where(*self._unchanged(expected)).values(**values)
            )
            await session.commit()
            return bool(result.rowcount)  # type: ignore[attr-defined]

    async def delete_user_coin_if_unchanged(self, expected: UserCoin) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(delete(UserCoinRow).where(*self._unchanged(expected)))
            await session.commit()
            return bool(result.rowcount)  # type: ignore[attr-defined]

    async def get_user_coin(self, user_coin_id: str) -> UserCoin | None:
        async with self._session_factory() as session:
            row = await session.get(UserCoinRow, user_coin_id)
            return _user_coin_from_row(row) if row else None

    async def find_user_coins(
        self,
        catalog_coin_id: str,
        is_wishlist: bool | None = None,
    ) -> list[UserCoin]:
        stmt = select(UserCoinRow).where(
            UserCoinRow.catalog_coin_id == catalog_coin_id,
            UserCoinRow.is_deleted == false(),
        )
        if is_wishlist is not None:
            stmt = stmt.where(UserCoinRow.is_wishlist == is_wishlist)
        async with self._session_factory() as session:
            rows = await session.scalars(stmt)
            return [_user_coin_from_row(r) for r in rows]

    async def list_user_coins(self, is_wishlist: bool) -> list[UserCoin]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserCoinRow, CatalogCoinRow, RulerRow)
                .outerjoin(CatalogCoinRow, UserCoinRow.catalog_coin_id == CatalogCoinRow.id)
                .outerjoin(RulerRow, CatalogCoinRow.ruler_id == RulerRow.id)
                .where(
                    UserCoinRow.is_wishlist == is_wishlist,
                    UserCoinRow.is_deleted == false(),
                )
                .order_by(UserCoinRow.created_at.desc())
            )
            coins = []
            for user_row, catalog_row, ruler_row in result:
                coin = _user_coin_from_row(user_row)
                if catalog_row is not None:
                    coin.catalog_coin = _catalog_coin_from_row(catalog_row, ruler_row)
                coins.append(coin)
            return coins

    async def list_all_user_coins(self) -> list[UserCoin]:
        async with self._session_factory() as session:
            rows = await session.scalars(select(UserCoinRow).order_by(UserCoinRow.created_at))
            return [_user_coin_from_row(r) for r in rows]

    async def list_pending(self) -> list[UserCoin]:
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(UserCoinRow)
                .where(UserCoinRow.needs_sync == true())
                .order_by(
                    func.coalesce(UserCoinRow.updated_at, UserCoinRow.created_at),
                    UserCoinRow.created_at,
                    UserCoinRow.id,
                )
            )
            return [_user_coin_from_row(r) for r in rows]

    async def delete_user_coin(self, user_coin_id: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(UserCoinRow).where(UserCoinRow.id == user_coin_id))
            await session.commit()

    async def purge_user_coins(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(delete(UserCoinRow))
            await session.commit()
            # rowcount is available on DELETE results; type stubs incomplete for async
            return int(result.rowcount)  # type: ignore[attr-defined]
