"""Record store: collection-style access to the CareOps tables."""

from app.store.base import (
    Collection,
    Filter,
    RecordNotFoundError,
    RecordStore,
    RecordStoreError,
)
from app.store.sql import SqlRecordStore

__all__ = [
    "Collection",
    "Filter",
    "RecordNotFoundError",
    "RecordStore",
    "RecordStoreError",
    "SqlRecordStore",
]
