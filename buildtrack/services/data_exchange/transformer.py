"""
Row Transformer / Validator.

Turns one raw sheet row (header → cell value) into a typed record for a
registry table.  Only uploadable fields are read; a field whose header is
absent from the row stays absent from the record, while a present-but-empty
cell becomes an explicit None.  Transformation never raises: every
problem ends up as a message in ``TransformedRow.errors``.
"""

from __future__ import annotations

from typing import Mapping, NamedTuple


class TransformedRow(NamedTuple):
    record: dict
    errors: list[str]

    @property
    def ok(self) -> bool:
        return not self.errors


def transform_row(registry, table: str, raw_row: Mapping) -> TransformedRow:
    schema = registry.require(table)
    record: dict = {}
    errors: list[str] = []

    for spec in schema.uploadable_fields:
        if spec.name in raw_row:
            try:
                value = spec.transform(raw_row[spec.name])
            except (ValueError, TypeError, ArithmeticError) as exc:
                errors.append(f"Error processing {spec.name}: {exc}")
                value = None
            record[spec.name] = value
        else:
            value = None
        errors.extend(spec.validate(value))

    return TransformedRow(record, errors)


def supplied_id(registry, table: str, raw_row: Mapping) -> str | None:
    """Caller-supplied primary key of a raw row, normalised as text."""
    pk = registry.require(table).primary_key
    if pk.name not in raw_row:
        return None
    try:
        return pk.transform(raw_row[pk.name])
    except (ValueError, TypeError):
        return None
