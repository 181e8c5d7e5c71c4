from coincatalog.storage.base import CollectionStorage
from coincatalog.storage.factory import create_storage
from coincatalog.storage.memory import MemoryStorage
from coincatalog.storage.sql import SqlStorage

__all__ = [
    "CollectionStorage",
    "MemoryStorage",
    "SqlStorage",
    "create_storage",
]
