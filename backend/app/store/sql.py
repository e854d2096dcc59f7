"""SQLAlchemy-backed record store.

Each write commits on its own: a field update and a later insert are
independent units, so one can succeed while the other fails. Reads use
`populate_existing` so a refresh always observes what was committed,
not what the identity map remembers.
"""

from __future__ import annotations

import enum
import logging
from typing import Any

from sqlalchemy import inspect, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.inventory import InventoryItem
from app.models.profile import Profile
from app.models.service import Service
from app.models.workspace import Workspace
from app.store.base import Collection, Filter, RecordNotFoundError, RecordStoreError

logger = logging.getLogger(__name__)

MODELS = {
    Collection.WORKSPACE: Workspace,
    Collection.SERVICE: Service,
    Collection.INVENTORY_ITEM: InventoryItem,
    Collection.PROFILE: Profile,
}


def _to_record(obj) -> dict:
    record = {}
    for attr in inspect(obj).mapper.column_attrs:
        value = getattr(obj, attr.key)
        if isinstance(value, enum.Enum):
            value = value.value
        record[attr.key] = value
    return record


def _column_names(model) -> set[str]:
    return {attr.key for attr in inspect(model).column_attrs}


class SqlRecordStore:
    """Record store over one request-scoped `AsyncSession`."""

    def __init__(self, db: AsyncSession):
        self._db = db

    def _model(self, collection: Collection):
        return MODELS[Collection(collection)]

    def _check_fields(self, collection: Collection, fields) -> None:
        unknown = set(fields) - _column_names(self._model(collection))
        if unknown:
            raise RecordStoreError(
                f"Unknown {collection.value} fields: {', '.join(sorted(unknown))}",
                collection,
            )

    async def _commit(self, collection: Collection, action: str) -> None:
        try:
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            logger.warning("Commit failed for %s %s: %s", action, collection.value, exc)
            raise RecordStoreError(f"Could not {action} {collection.value}", collection) from exc

    # ── Reads ───────────────────────────────────────────────

    async def read_one(self, collection: Collection, record_id: str) -> dict | None:
        model = self._model(collection)
        try:
            result = await self._db.execute(
                select(model)
                .where(model.id == record_id)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as exc:
            logger.warning("Read failed for %s %s: %s", collection.value, record_id, exc)
            raise RecordStoreError(f"Could not read {collection.value}", collection) from exc
        obj = result.scalar_one_or_none()
        return _to_record(obj) if obj else None

    async def select(
        self,
        collection: Collection,
        filters: list[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        model = self._model(collection)
        filters = filters or []
        self._check_fields(collection, [f.field for f in filters])

        stmt = select(model).execution_options(populate_existing=True)
        for f in filters:
            column = getattr(model, f.field)
            if f.op == "eq":
                stmt = stmt.where(column == f.value)
            elif f.op == "neq":
                stmt = stmt.where(column != f.value)
            elif f.op == "gt":
                stmt = stmt.where(column > f.value)
            elif f.op == "gte":
                stmt = stmt.where(column >= f.value)
            elif f.op == "lt":
                stmt = stmt.where(column < f.value)
            else:
                stmt = stmt.where(column <= f.value)
        if order_by:
            self._check_fields(collection, [order_by])
            column = getattr(model, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            result = await self._db.execute(stmt)
        except SQLAlchemyError as exc:
            logger.warning("Select failed for %s: %s", collection.value, exc)
            raise RecordStoreError(f"Could not list {collection.value}", collection) from exc
        return [_to_record(obj) for obj in result.scalars().all()]

    async def read_profile(self, user_id: str) -> dict | None:
        """Profile for a user joined with its workspace's status and progress."""
        try:
            result = await self._db.execute(
                select(Profile, Workspace)
                .outerjoin(Workspace, Profile.workspace_id == Workspace.id)
                .where(Profile.user_id == user_id)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as exc:
            logger.warning("Profile read failed for user %s: %s", user_id, exc)
            raise RecordStoreError("Could not read profile", Collection.PROFILE) from exc

        row = result.first()
        if row is None:
            return None
        profile, workspace = row
        record = _to_record(profile)
        record["workspace"] = None
        if workspace is not None:
            record["workspace"] = {
                "name": workspace.name,
                "status": workspace.status.value,
                "onboarding_step": workspace.onboarding_step,
            }
        return record

    # ── Writes ──────────────────────────────────────────────

    async def update_fields(
        self, collection: Collection, record_id: str, fields: dict[str, Any]
    ) -> dict:
        """Write a subset of fields in a single UPDATE and return the new record."""
        model = self._model(collection)
        self._check_fields(collection, fields)
        if "id" in fields:
            raise RecordStoreError("Record ids are immutable", collection)

        try:
            result = await self._db.execute(
                update(model).where(model.id == record_id).values(**fields)
            )
        except SQLAlchemyError as exc:
            await self._db.rollback()
            logger.warning("Update failed for %s %s: %s", collection.value, record_id, exc)
            raise RecordStoreError(f"Could not update {collection.value}", collection) from exc
        if result.rowcount == 0:
            await self._db.rollback()
            raise RecordNotFoundError(collection, record_id)
        await self._commit(collection, "update")

        record = await self.read_one(collection, record_id)
        if record is None:
            raise RecordNotFoundError(collection, record_id)
        return record

    async def insert_row(self, collection: Collection, row: dict[str, Any]) -> dict:
        model = self._model(collection)
        self._check_fields(collection, row)
        obj = model(**row)
        self._db.add(obj)
        try:
            await self._db.flush()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            logger.warning("Insert failed for %s: %s", collection.value, exc)
            raise RecordStoreError(f"Could not create {collection.value}", collection) from exc
        await self._commit(collection, "create")
        return _to_record(obj)
