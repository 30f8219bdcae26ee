"""
Export Engine — persisted records and upload templates as workbooks.

Exports carry every registry field of a table (id and timestamps included)
so an exported workbook can be uploaded again unchanged: the import
recognises existing records by id or natural key and updates them.
Templates carry only the uploadable fields plus one sample row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from openpyxl import Workbook
from sqlalchemy.exc import SQLAlchemyError

from buildtrack.core.exceptions import NotFoundError
from buildtrack.services.data_exchange.registry import get_registry
from buildtrack.services.data_exchange.storage import MissingStoreError
from buildtrack.services.data_exchange.workbook import new_workbook, write_sheet

logger = logging.getLogger(__name__)


class NoDataError(NotFoundError):
    def __init__(self, table: str | None = None):
        super().__init__(resource="Data", resource_id=table)
        self.table = table


@dataclass
class ExportSummary:
    exported: list[str] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)
    empty: list[str] = field(default_factory=list)

    def to_dict(self):
        return {"exported": list(self.exported), "failed": list(self.failed), "empty": list(self.empty)}


def _field_note(spec) -> str:
    parts = [spec.semantic_type.name]
    if spec.required:
        parts.append("required")
    if spec.max_length:
        parts.append(f"max {spec.max_length} chars")
    if spec.enum_domain:
        parts.append("one of: " + ", ".join(spec.enum_domain))
    if spec.references:
        parts.append(f"id of a {spec.references} record")
    return " - ".join(parts)


class ExportEngine:

    def __init__(self, stores, registry=None):
        self.registry = registry or get_registry()
        self.stores = stores

    def _records(self, table: str) -> tuple:
        schema = self.registry.require(table)
        store = self.stores.get(table)
        if store is None:
            raise MissingStoreError(table)
        records = store.list_all()
        if not records:
            raise NoDataError(table)
        return schema, records

    def _write_records(self, wb: Workbook, sheet_name: str, schema, records) -> None:
        rows = [
            [spec.to_cell(record.get(spec.name)) for spec in schema.fields]
            for record in records
        ]
        write_sheet(wb, sheet_name, schema.field_names, rows)

    def export_table(self, table: str) -> Workbook:
        schema, records = self._records(table)
        wb = new_workbook()
        self._write_records(wb, table, schema, records)
        logger.info("Exported %d %s records", len(records), table)
        return wb

    def export_all(self) -> tuple[Workbook, ExportSummary]:
        """One sheet per backed table with data; failures are collected, not raised."""
        wb = new_workbook()
        summary = ExportSummary()
        for table in self.registry.list_tables():
            if self.stores.get(table) is None:
                continue
            try:
                schema, records = self._records(table)
                self._write_records(wb, table, schema, records)
            except NoDataError:
                summary.empty.append(table)
                continue
            except (SQLAlchemyError, ValueError, TypeError) as exc:
                logger.warning("Export of %s failed: %s", table, exc)
                summary.failed.append({"table": table, "error": str(exc)})
                continue
            summary.exported.append(table)

        if not summary.exported:
            raise NoDataError()
        logger.info("Exported %d tables (%d failed)", len(summary.exported), len(summary.failed))
        return wb, summary

    # ── Templates ───────────────────────────────────────────────────────

    def _write_template(self, wb: Workbook, table: str) -> None:
        fields = self.registry.uploadable_fields(table)
        headers = [spec.name for spec in fields]
        sample = [spec.to_cell(spec.sample()) for spec in fields]
        notes = {spec.name: _field_note(spec) for spec in fields}
        write_sheet(wb, table, headers, [sample], notes=notes)

    def generate_template(self, table: str) -> Workbook:
        wb = new_workbook()
        self._write_template(wb, table)
        return wb

    def generate_all_templates(self) -> Workbook:
        wb = new_workbook()
        for table in self.registry.list_tables():
            self._write_template(wb, table)
        return wb
