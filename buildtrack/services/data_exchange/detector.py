"""
Table Detector — decides which registry table a sheet holds.

Rules, first hit wins:
  1. the normalised sheet name equals a table name
  2. the normalised sheet name contains a table name, or is contained in one
  3. the share of the sheet's headers that are table fields, divided by
     the larger of header count and field count, exceeds 0.3

Tables are always tried in registry order, so ties go to the table
declared first.
"""

from __future__ import annotations

import logging
import re
from typing import NamedTuple

logger = logging.getLogger(__name__)

HEADER_MATCH_THRESHOLD = 0.3

_WHITESPACE = re.compile(r"\s+")


class TableMatch(NamedTuple):
    table: str
    rule: str
    score: float = 1.0


def normalize_sheet_name(name: str) -> str:
    return _WHITESPACE.sub("_", (name or "").lower())


def sheet_headers(rows) -> list[str]:
    """Ordered union of the keys present across all rows."""
    seen: dict[str, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(key, None)
    return list(seen)


def detect_table(registry, sheet_name: str, rows) -> TableMatch | None:
    normalized = normalize_sheet_name(sheet_name)
    tables = registry.list_tables()

    for table in tables:
        if normalized == table:
            return TableMatch(table, "name")

    if normalized:
        for table in tables:
            if table in normalized or normalized in table:
                return TableMatch(table, "partial-name")

    headers = sheet_headers(rows)
    if headers:
        header_set = set(headers)
        for table in tables:
            fields = registry.describe_table(table).field_names
            overlap = len(header_set.intersection(fields))
            score = overlap / max(len(headers), len(fields))
            if score > HEADER_MATCH_THRESHOLD:
                return TableMatch(table, "headers", score)

    logger.debug("No table matched sheet %r (%d headers)", sheet_name, len(headers))
    return None


def detection_failure_reason(registry, sheet_name: str) -> str:
    return (
        f"Could not match sheet '{sheet_name}' to a table. "
        f"Expected one of: {', '.join(registry.list_tables())}"
    )
