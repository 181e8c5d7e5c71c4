from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="COINCATALOG_")

    app_name: str = "Coin Catalog"
    debug: bool = False

    # Remote collection service (system of record)
    database_url: str = "postgresql+asyncpg://localhost:5432/coincatalog"
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    token_expire_days: int = 7

    # Reject client writes older than the stored record (see collection sync)
    reject_stale_writes: bool = True

    # Local store
    storage_backend: Literal["sql", "memory"] = "sql"
    local_database_url: str = "sqlite+aiosqlite:///coin_catalog.db"
    snapshot_path: str | None = None
    catalog_path: str | None = None

    # Sync client
    remote_api_url: str = "http://localhost:3000"
    sync_timeout_seconds: float = 5.0
    sync_queue_size: int = 256
    sync_workers: int = 1

    # Account used by the sync_collection job
    sync_email: str | None = None
    sync_password: str | None = None


settings = Settings()


# =============================================================================
# CATALOG LIMITS
# =============================================================================

# Search results are capped; callers must send at least this many characters
SEARCH_RESULT_LIMIT = 50
MIN_SEARCH_LENGTH = 3

# Bumping this drops and reseeds the reference tables of the local store.
# user_coins is migrated additively and never dropped.
SCHEMA_VERSION = 5
