from coincatalog.db.database import get_session, init_db
from coincatalog.db.operations import (
    create_user,
    get_collection_stats,
    get_live_user_coin,
    get_user,
    get_user_by_email,
    get_user_coin_by_catalog_id,
    list_user_coins,
    record_login,
    soft_delete_user_coin,
    sync_user_coins,
    update_user_coin,
    upsert_user_coin,
)

__all__ = [
    "create_user",
    "get_collection_stats",
    "get_live_user_coin",
    "get_session",
    "get_user",
    "get_user_by_email",
    "get_user_coin_by_catalog_id",
    "init_db",
    "list_user_coins",
    "record_login",
    "soft_delete_user_coin",
    "sync_user_coins",
    "update_user_coin",
    "upsert_user_coin",
]
