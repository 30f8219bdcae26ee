"""
Table stores — the persistence seam of the data-exchange engine.

The engine only talks to ``TableStore`` objects obtained from a
``StoreRegistry``; a registry table without a store is described (it gets
templates) but cannot be imported or exported.  ``SqlAlchemyTableStore``
backs a store with one ``RecordModel`` class: records cross the seam as
dicts keyed by camelCase field names.

Every write commits immediately.  On failure the session is rolled back
and the error re-raised, so one bad row never poisons the next.
"""

from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from buildtrack.core.exceptions import NotFoundError
from buildtrack.models import db

logger = logging.getLogger(__name__)


class MissingStoreError(LookupError):
    """A registry table has no backing store."""

    def __init__(self, table):
        self.table = table
        super().__init__(f"No backing model for table '{table}'")


class TableStore:
    """Interface every backing store implements."""

    table: str

    def find_by_primary_key(self, record_id) -> dict | None:
        raise NotImplementedError

    def find_by_unique_field(self, field: str, value, case_insensitive: bool = False) -> dict | None:
        raise NotImplementedError

    def find_by_composite_key(self, key: dict) -> dict | None:
        raise NotImplementedError

    def create(self, values: dict, record_id=None) -> dict:
        raise NotImplementedError

    def update(self, record_id, values: dict) -> dict:
        raise NotImplementedError

    def count(self, where: dict) -> int:
        raise NotImplementedError

    def delete(self, record_id) -> None:
        raise NotImplementedError

    def list_all(self) -> list[dict]:
        raise NotImplementedError

    def max_value(self, field: str):
        raise NotImplementedError


class SqlAlchemyTableStore(TableStore):

    def __init__(self, model):
        self.model = model
        self.table = model.__tablename__

    def _column(self, field: str):
        attribute = self.model.attribute_for(field)
        if attribute not in self.model.column_attributes():
            raise KeyError(f"{self.table} has no column for field {field!r}")
        return getattr(self.model, attribute)

    def _assign(self, obj, values: dict) -> None:
        # Resolve every column before touching the object
        attributes = {self._column(field).key: value for field, value in values.items()}
        for attribute, value in attributes.items():
            setattr(obj, attribute, value)

    def _commit(self) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

    # ── Reads ───────────────────────────────────────────────────────────

    def find_by_primary_key(self, record_id):
        if record_id is None:
            return None
        obj = db.session.get(self.model, str(record_id))
        return obj.to_dict() if obj else None

    def find_by_unique_field(self, field, value, case_insensitive=False):
        if value is None:
            return None
        column = self._column(field)
        if case_insensitive and isinstance(value, str):
            condition = func.lower(column) == value.lower()
        else:
            condition = column == value
        obj = self.model.query.filter(condition).first()
        return obj.to_dict() if obj else None

    def find_by_composite_key(self, key):
        query = self.model.query
        for field, value in key.items():
            query = query.filter(self._column(field) == value)
        obj = query.first()
        return obj.to_dict() if obj else None

    def count(self, where):
        query = self.model.query
        for field, value in where.items():
            query = query.filter(self._column(field) == value)
        return query.count()

    def list_all(self):
        return [
            obj.to_dict()
            for obj in self.model.query.order_by(self.model.created_at.asc(), self.model.id.asc()).all()
        ]

    def max_value(self, field):
        return db.session.query(func.max(self._column(field))).scalar()

    # ── Writes ──────────────────────────────────────────────────────────

    def create(self, values, record_id=None):
        obj = self.model()
        self._assign(obj, values)
        if record_id is not None:
            obj.id = str(record_id)
        db.session.add(obj)
        self._commit()
        logger.debug("Created %s %s", self.table, obj.id)
        return obj.to_dict()

    def update(self, record_id, values):
        obj = db.session.get(self.model, str(record_id))
        if obj is None:
            raise NotFoundError(resource=self.table, resource_id=record_id)
        self._assign(obj, values)
        self._commit()
        logger.debug("Updated %s %s", self.table, obj.id)
        return obj.to_dict()

    def delete(self, record_id):
        obj = db.session.get(self.model, str(record_id))
        if obj is None:
            raise NotFoundError(resource=self.table, resource_id=record_id)
        db.session.delete(obj)
        self._commit()
        logger.debug("Deleted %s %s", self.table, record_id)


class StoreRegistry:
    """Table name → TableStore for the tables that have a backing store."""

    def __init__(self, stores: dict[str, TableStore]):
        self._stores = dict(stores)

    def get(self, table: str) -> TableStore | None:
        return self._stores.get(table)

    def __contains__(self, table) -> bool:
        return table in self._stores

    def tables(self) -> list[str]:
        return list(self._stores)


def build_store_registry(models=None) -> StoreRegistry:
    """Stores for ``models``, or for every RecordModel subclass mapped on ``db``."""
    if models is None:
        from buildtrack.models import communication, directory, project, workflow  # noqa: F401
        from buildtrack.models.base import RecordModel

        models = [
            mapper.class_
            for mapper in db.Model.registry.mappers
            if issubclass(mapper.class_, RecordModel)
        ]
    return StoreRegistry({model.__tablename__: SqlAlchemyTableStore(model) for model in models})
