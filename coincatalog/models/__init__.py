from coincatalog.models.catalog import CatalogCoin, Country, Period, Ruler
from coincatalog.models.failure import (
    ApiResponse,
    AuthError,
    ConflictError,
    FailureDetail,
    FailureKind,
    KnownError,
    NotFoundError,
    OutcomeType,
    SchemaMigrationError,
    SyncFailure,
    ValidationError,
)
from coincatalog.models.user_coin import Membership, UserCoin

__all__ = [
    "ApiResponse",
    "AuthError",
    "CatalogCoin",
    "ConflictError",
    "Country",
    "FailureDetail",
    "FailureKind",
    "KnownError",
    "Membership",
    "NotFoundError",
    "OutcomeType",
    "Period",
    "Ruler",
    "SchemaMigrationError",
    "SyncFailure",
    "UserCoin",
    "ValidationError",
]
