"""
Bulk data exchange between spreadsheets and the BuildTrack tables.

Entry points used by the HTTP blueprint and the CLI:

    import_orchestrator()  ImportOrchestrator over the database-backed stores
    export_engine()        ExportEngine over the same stores
    read_workbook()        upload bytes → {sheet name: [row dict, ...]}
    workbook_to_bytes()    openpyxl Workbook → .xlsx bytes
"""

from flask import current_app

from buildtrack.services.data_exchange.exporter import ExportEngine, ExportSummary, NoDataError
from buildtrack.services.data_exchange.orchestrator import (
    DEFAULT_SEQUENCE_FLOOR,
    EmptyWorkbookError,
    ImportOrchestrator,
    RunSummary,
)
from buildtrack.services.data_exchange.registry import (
    FieldRegistry,
    RegistryError,
    UnknownTableError,
    build_registry,
    get_registry,
)
from buildtrack.services.data_exchange.storage import MissingStoreError, build_store_registry
from buildtrack.services.data_exchange.workbook import read_workbook, workbook_to_bytes


def import_orchestrator() -> ImportOrchestrator:
    floor = current_app.config.get("DATA_EXCHANGE_SEQUENCE_FLOOR", DEFAULT_SEQUENCE_FLOOR)
    return ImportOrchestrator(build_store_registry(), get_registry(), sequence_floor=floor)


def export_engine() -> ExportEngine:
    return ExportEngine(build_store_registry(), get_registry())


__all__ = [
    "EmptyWorkbookError",
    "ExportEngine",
    "ExportSummary",
    "FieldRegistry",
    "ImportOrchestrator",
    "MissingStoreError",
    "NoDataError",
    "RegistryError",
    "RunSummary",
    "UnknownTableError",
    "build_registry",
    "build_store_registry",
    "export_engine",
    "get_registry",
    "import_orchestrator",
    "read_workbook",
    "workbook_to_bytes",
]
