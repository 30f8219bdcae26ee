"""
Identifier remap table.

When a row's supplied id differs from the id of the record it was persisted
as (an existing record matched by natural or composite key, or a stub
created under a fresh id), the pair is recorded here.  Later rows that
reference the supplied id are rewritten to the persisted one before they
are written.
"""

from __future__ import annotations

from collections import defaultdict


class IdentifierRemapTable:

    def __init__(self):
        self._maps: dict[str, dict[str, str]] = defaultdict(dict)

    def record(self, table: str, supplied, persisted) -> None:
        if supplied is None or persisted is None or str(supplied) == str(persisted):
            return
        self._maps[table][str(supplied)] = str(persisted)

    def resolve(self, table: str, value):
        if value is None:
            return None
        return self._maps.get(table, {}).get(str(value), value)

    def apply(self, schema, record: dict) -> list[str]:
        """Rewrite reference fields of ``record`` in place.

        Returns the names of the fields that were substituted.
        """
        substituted = []
        for rel in schema.relationships:
            value = record.get(rel.field)
            if value is None:
                continue
            resolved = self.resolve(rel.table, value)
            if resolved != value:
                record[rel.field] = resolved
                substituted.append(rel.field)
        return substituted

    def entries(self, table: str) -> dict[str, str]:
        return dict(self._maps.get(table, {}))

    def __len__(self):
        return sum(len(mapping) for mapping in self._maps.values())
