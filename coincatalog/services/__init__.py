"""
Coin catalog services.

Catalog queries, collection bookkeeping and sync with the remote service.
"""

from coincatalog.services.catalog_data import (
    CatalogData,
    CatalogDataError,
    get_catalog_data,
    load_catalog_data,
)
from coincatalog.services.denominations import (
    DENOMINATION_ORDER,
    DenominationGroup,
    DenominationType,
    classify_coin,
    group_coins,
)
from coincatalog.services.stats import CollectionStats, compute_collection_stats

__all__ = [
    "DENOMINATION_ORDER",
    "CatalogData",
    "CatalogDataError",
    "CollectionStats",
    "DenominationGroup",
    "DenominationType",
    "classify_coin",
    "compute_collection_stats",
    "get_catalog_data",
    "group_coins",
    "load_catalog_data",
]
