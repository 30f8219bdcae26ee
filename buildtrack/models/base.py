"""
RecordModel — abstract base for every data-exchange backed table.

Adds the string primary key and creation timestamp shared by all tables,
plus the camelCase <-> snake_case mapping used when a row from a workbook
is turned into model attributes (and back again for export).
"""

import re
import uuid
from datetime import datetime, timezone

from sqlalchemy import inspect

from buildtrack.models import db

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def _utcnow():
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid.uuid4().hex


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


class RecordModel(db.Model):
    """Abstract base for tables addressed by camelCase field names."""
    __abstract__ = True

    # Field names whose attribute is not the plain snake_case spelling
    # (e.g. ``metadata`` is reserved on declarative classes).
    __field_aliases__: dict[str, str] = {}

    id = db.Column(db.String(64), primary_key=True, default=new_id)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    @classmethod
    def attribute_for(cls, field_name: str) -> str:
        return cls.__field_aliases__.get(field_name) or camel_to_snake(field_name)

    @classmethod
    def field_for(cls, attribute: str) -> str:
        for field_name, alias in cls.__field_aliases__.items():
            if alias == attribute:
                return field_name
        return snake_to_camel(attribute)

    @classmethod
    def column_attributes(cls) -> list[str]:
        return [prop.key for prop in inspect(cls).column_attrs]

    def to_dict(self) -> dict:
        """Record keyed by camelCase field names."""
        return {self.field_for(attr): getattr(self, attr) for attr in self.column_attributes()}

    def __repr__(self):
        return f"<{type(self).__name__} {self.id}>"


class TimestampedRecordModel(RecordModel):
    __abstract__ = True

    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)
