"""
Import Orchestrator — drives a whole workbook import.

    sheets ──► detect table ──► plan order ──► for each row:
                                                transform / validate
                                                rewrite remapped references
                                                upsert via the table policy
                                                record id remaps
                                             ──► cleanup (composite tables)
           ──► RunSummary

Rows are independent: a failing row is reported with its 1-based data row
number and the import carries on.  Sheets that cannot be processed at all
(empty, unrecognised, or without a backing store) are reported as skipped.
The only run-level failure is a workbook without any data rows.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from buildtrack.core.exceptions import ValidationError
from buildtrack.services.data_exchange.detector import detect_table, detection_failure_reason
from buildtrack.services.data_exchange.planner import plan_order
from buildtrack.services.data_exchange.registry import get_registry
from buildtrack.services.data_exchange.remap import IdentifierRemapTable
from buildtrack.services.data_exchange.sequence import SequenceGenerator
from buildtrack.services.data_exchange.storage import MissingStoreError
from buildtrack.services.data_exchange.transformer import supplied_id, transform_row

logger = logging.getLogger(__name__)

DEFAULT_SEQUENCE_FLOOR = 90000


class EmptyWorkbookError(ValidationError):
    def __init__(self, message="Workbook contains no data rows"):
        super().__init__(message)


# ═══════════════════════════════════════════════════════════════
# RESULT TYPES
# ═══════════════════════════════════════════════════════════════

@dataclass
class RowError:
    row: int
    error: str

    def to_dict(self):
        return {"row": self.row, "error": self.error}


@dataclass
class SheetOutcome:
    sheet_name: str
    target_table: str
    total_rows: int = 0
    successful: int = 0
    failed: int = 0
    created: int = 0
    updated: int = 0
    cleanup_deleted: int = 0
    errors: list[RowError] = field(default_factory=list)

    def fail(self, row: int, message: str) -> None:
        self.failed += 1
        self.errors.append(RowError(row, message))

    def to_dict(self):
        return {
            "sheetName": self.sheet_name,
            "targetTable": self.target_table,
            "totalRows": self.total_rows,
            "successful": self.successful,
            "failed": self.failed,
            "created": self.created,
            "updated": self.updated,
            "cleanupDeleted": self.cleanup_deleted,
            "errors": [err.to_dict() for err in self.errors],
        }


@dataclass
class RunSummary:
    sheets: list[SheetOutcome] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)
    stubs_created: dict[str, int] = field(default_factory=dict)

    @property
    def total_records(self) -> int:
        return sum(s.total_rows for s in self.sheets)

    @property
    def total_successful(self) -> int:
        return sum(s.successful for s in self.sheets)

    @property
    def total_failed(self) -> int:
        return sum(s.failed for s in self.sheets)

    @property
    def status(self) -> str:
        if self.total_failed == 0:
            return "completed"
        if self.total_successful == 0:
            return "failed"
        return "partial"

    def to_dict(self):
        return {
            "status": self.status,
            "sheets": [s.to_dict() for s in self.sheets],
            "totalSheets": len(self.sheets),
            "totalRecords": self.total_records,
            "totalSuccessful": self.total_successful,
            "totalFailed": self.total_failed,
            "skipped": list(self.skipped),
            "stubsCreated": dict(self.stubs_created),
        }


# ═══════════════════════════════════════════════════════════════
# RUN CONTEXT
# ═══════════════════════════════════════════════════════════════

class ImportContext:
    """State shared by every row of one import run."""

    def __init__(self, registry, stores, sequence):
        self.registry = registry
        self.stores = stores
        self.sequence = sequence
        self.remap = IdentifierRemapTable()
        self.stubs_created: Counter = Counter()

    def store(self, table):
        store = self.stores.get(table)
        if store is None:
            raise MissingStoreError(table)
        return store

    def seed_for(self, parent_table, values) -> dict:
        """Identity hints for ``parent_table`` carried by a child record."""
        policy = self.registry.policy(parent_table)
        return {name: values[name] for name in policy.identity_fields if values.get(name) is not None}

    def ensure(self, table, record_id=None, seed=None) -> str:
        """Id of an existing ``table`` record, creating a stub if needed.

        Lookup order: the (remapped) id, then the parent's identity carried
        in ``seed``, then a new stub.  A stub keeps ``record_id`` when it is
        a usable id, otherwise the pair is remapped so later references to
        the same dangling id reuse the stub.
        """
        store = self.store(table)
        if record_id is not None:
            record_id = self.remap.resolve(table, record_id)
            found = store.find_by_primary_key(record_id)
            if found is not None:
                return found["id"]

        schema = self.registry.require(table)
        policy = self.registry.policy(table)
        if seed:
            existing = policy.find_existing(schema, seed, self)
            if existing is not None:
                self.remap.record(table, record_id, existing["id"])
                return existing["id"]

        values = policy.stub_values(schema, dict(seed or {}), self)
        created = policy.create(schema, values, record_id, self)
        self.stubs_created[table] += 1
        self.remap.record(table, record_id, created["id"])
        logger.info("Created stub %s %s (for reference %r)", table, created["id"], record_id)
        return created["id"]


# ═══════════════════════════════════════════════════════════════
# ORCHESTRATOR
# ═══════════════════════════════════════════════════════════════

class ImportOrchestrator:

    def __init__(self, stores, registry=None, sequence=None, sequence_floor=DEFAULT_SEQUENCE_FLOOR):
        self.registry = registry or get_registry()
        self.stores = stores
        self.sequence = sequence or SequenceGenerator(sequence_floor)

    # ── Planning ────────────────────────────────────────────────────────

    def plan(self, sheets: dict, target_table: str | None = None):
        """Return ``(planned, skipped)``.

        ``planned`` is a list of ``(sheet_name, table, rows)`` in dependency
        order; ``skipped`` lists ``{"sheetName", "reason"}`` entries.
        """
        if target_table is not None:
            self.registry.require(target_table)

        matched, skipped = [], []
        for sheet_name, rows in sheets.items():
            if not rows:
                skipped.append({"sheetName": sheet_name, "reason": "Sheet is empty"})
                continue
            if target_table is not None:
                table = target_table
            else:
                match = detect_table(self.registry, sheet_name, rows)
                if match is None:
                    reason = detection_failure_reason(self.registry, sheet_name)
                    logger.warning("Skipping sheet %r: no matching table", sheet_name)
                    skipped.append({"sheetName": sheet_name, "reason": reason})
                    continue
                table = match.table
                logger.debug("Sheet %r → %s (%s)", sheet_name, table, match.rule)
            if self.stores.get(table) is None:
                logger.warning("Skipping sheet %r: %s has no backing model", sheet_name, table)
                skipped.append({"sheetName": sheet_name, "reason": f"No backing model for table '{table}'"})
                continue
            matched.append((sheet_name, table, rows))

        return plan_order(matched), skipped

    def _seed_sequence(self) -> None:
        for table in self.registry.list_tables():
            policy = self.registry.policy(table)
            store = self.stores.get(table)
            if policy.kind == "surrogate_key" and store is not None:
                self.sequence.observe(store.max_value(policy.key_field))

    # ── Import ──────────────────────────────────────────────────────────

    def import_workbook(self, sheets: dict, target_table: str | None = None) -> RunSummary:
        """Import ``{sheet name: [row dict, ...]}`` and summarise the run."""
        if not any(sheets.values()):
            raise EmptyWorkbookError()

        planned, skipped = self.plan(sheets, target_table)
        self._seed_sequence()
        ctx = ImportContext(self.registry, self.stores, self.sequence)
        summary = RunSummary(skipped=skipped)

        logger.info("Import started: %d sheets planned, %d skipped", len(planned), len(skipped))
        for sheet_name, table, rows in planned:
            summary.sheets.append(self._import_sheet(ctx, sheet_name, table, rows))

        summary.stubs_created = dict(ctx.stubs_created)
        logger.info(
            "Import finished: %d/%d rows ok, %d failed, stubs=%s",
            summary.total_successful, summary.total_records, summary.total_failed,
            summary.stubs_created or "none",
        )
        return summary

    def _import_sheet(self, ctx, sheet_name, table, rows) -> SheetOutcome:
        schema = self.registry.require(table)
        policy = self.registry.policy(table)
        outcome = SheetOutcome(sheet_name, table, total_rows=len(rows))
        uploaded_keys = set()
        extra = {"sheet_name": sheet_name, "target_table": table}

        logger.info("Importing sheet %r into %s (%d rows)", sheet_name, table, len(rows), extra=extra)
        for row_number, raw in enumerate(rows, start=1):
            result = transform_row(self.registry, table, raw)
            record_id = supplied_id(self.registry, table, raw)
            ctx.remap.apply(schema, result.record)
            if not result.ok:
                outcome.fail(row_number, "; ".join(result.errors))
                logger.debug("Row %d of %r invalid: %s", row_number, sheet_name, result.errors,
                             extra={**extra, "row": row_number})
                continue

            try:
                written = policy.upsert(schema, result.record, record_id, ctx)
            except Exception as exc:
                outcome.fail(row_number, _describe(exc))
                logger.warning("Row %d of %r failed: %s", row_number, sheet_name, _describe(exc),
                               extra={**extra, "row": row_number})
                continue

            outcome.successful += 1
            if written.created:
                outcome.created += 1
            else:
                outcome.updated += 1
            ctx.remap.record(table, record_id, written.record_id)
            if policy.supports_cleanup:
                key = policy.identity_key(result.record)
                if key is not None:
                    uploaded_keys.add(key)
            logger.debug("Row %d of %r → %s %s", row_number, sheet_name, table, written.record_id,
                         extra={**extra, "row": row_number})

        if policy.supports_cleanup and uploaded_keys:
            outcome.cleanup_deleted = policy.cleanup(schema, uploaded_keys, ctx)

        if outcome.failed:
            logger.warning("Sheet %r: %d of %d rows failed", sheet_name, outcome.failed, outcome.total_rows,
                           extra=extra)
        return outcome

    # ── Dry run ─────────────────────────────────────────────────────────

    def validate_workbook(self, sheets: dict, target_table: str | None = None) -> dict:
        """Detect and validate every sheet without writing anything."""
        if not any(sheets.values()):
            raise EmptyWorkbookError()

        planned, skipped = self.plan(sheets, target_table)
        results = []
        for sheet_name, table, rows in planned:
            errors = []
            invalid_rows = 0
            for row_number, raw in enumerate(rows, start=1):
                transformed = transform_row(self.registry, table, raw)
                if not transformed.ok:
                    invalid_rows += 1
                    errors.extend(f"Row {row_number}: {message}" for message in transformed.errors)
            results.append({
                "sheetName": sheet_name,
                "targetTable": table,
                "totalRows": len(rows),
                "validRows": len(rows) - invalid_rows,
                "errors": errors,
            })
        return {
            "valid": all(not r["errors"] for r in results),
            "sheets": results,
            "skipped": skipped,
        }


def _describe(exc: Exception) -> str:
    if isinstance(exc, SQLAlchemyError) and getattr(exc, "orig", None) is not None:
        return str(exc.orig)
    return str(exc) or type(exc).__name__
