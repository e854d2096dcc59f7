"""Record store contract consumed by the session context and the wizard.

The store exposes named collections with read-one, update-fields and
insert-row operations, plus a filtered/ordered `select`. Records travel
as plain dicts so callers never hold ORM objects across requests.

Failures surface as `RecordStoreError`; callers decide whether that is
fatal. The store never retries.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Protocol


class Collection(str, enum.Enum):
    WORKSPACE = "workspace"
    SERVICE = "service"
    INVENTORY_ITEM = "inventory-item"
    PROFILE = "profile"


class RecordStoreError(Exception):
    """A read or write against the record store failed."""

    def __init__(self, message: str, collection: Collection | None = None):
        self.message = message
        self.collection = collection
        super().__init__(message)


class RecordNotFoundError(RecordStoreError):
    def __init__(self, collection: Collection, record_id: str):
        self.record_id = record_id
        super().__init__(f"{collection.value} not found: {record_id}", collection)


FILTER_OPS = ("eq", "neq", "gt", "gte", "lt", "lte")


@dataclass(frozen=True)
class Filter:
    """Equality / range predicate on one field, e.g. Filter("quantity", "lt", 5)."""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in FILTER_OPS:
            raise ValueError(f"Unsupported filter op: {self.op!r}")


class RecordStore(Protocol):
    async def read_one(self, collection: Collection, record_id: str) -> dict | None:
        ...

    async def update_fields(
        self, collection: Collection, record_id: str, fields: dict[str, Any]
    ) -> dict:
        ...

    async def insert_row(self, collection: Collection, row: dict[str, Any]) -> dict:
        ...

    async def select(
        self,
        collection: Collection,
        filters: list[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        ...

    async def read_profile(self, user_id: str) -> dict | None:
        ...
