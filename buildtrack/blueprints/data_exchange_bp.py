"""
Data Exchange Blueprint — spreadsheet import / export over HTTP.

Endpoints:
  GET  /api/v1/data-exchange/tables                      — Registry tables and fields
  GET  /api/v1/data-exchange/tables/<table>/fields/<f>   — One field's metadata
  GET  /api/v1/data-exchange/templates                   — Template workbook, all tables
  GET  /api/v1/data-exchange/templates/<table>           — Template workbook, one table
  POST /api/v1/data-exchange/validate                    — Validate a workbook (dry run)
  POST /api/v1/data-exchange/upload                      — Import a workbook
  GET  /api/v1/data-exchange/export                      — Export every table with data
  GET  /api/v1/data-exchange/export/<table>              — Export one table

Uploads are multipart with the workbook in the ``file`` field; an optional
``table`` form field skips detection and imports every sheet into that table.
"""

import logging
import os

from flask import Blueprint, Response, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from buildtrack.core.exceptions import NotFoundError, ValidationError
from buildtrack.models import db
from buildtrack.services.data_exchange import (
    MissingStoreError,
    export_engine,
    get_registry,
    import_orchestrator,
    read_workbook,
    workbook_to_bytes,
)
from buildtrack.utils.errors import E, api_error

logger = logging.getLogger(__name__)

data_exchange_bp = Blueprint("data_exchange_bp", __name__, url_prefix="/api/v1/data-exchange")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ═══════════════════════════════════════════════════════════════
# Error Handlers
# ═══════════════════════════════════════════════════════════════
@data_exchange_bp.errorhandler(NotFoundError)
def handle_not_found(e):
    return api_error(E.NOT_FOUND, str(e))


@data_exchange_bp.errorhandler(MissingStoreError)
def handle_missing_store(e):
    return api_error(E.VALIDATION_INVALID, str(e))


@data_exchange_bp.errorhandler(ValidationError)
def handle_validation_error(e):
    return api_error(E.VALIDATION_INVALID, str(e), details=e.details)


@data_exchange_bp.errorhandler(SQLAlchemyError)
def handle_database_error(e):
    db.session.rollback()
    logger.error("Database error in data exchange: %s", e)
    return api_error(E.DATABASE, "Database error")


# ═══════════════════════════════════════════════════════════════
# Registry
# ═══════════════════════════════════════════════════════════════
@data_exchange_bp.route("/tables", methods=["GET"])
def list_tables():
    """Every registry table with its fields and upsert policy."""
    registry = get_registry()
    tables = []
    for schema in registry:
        uploadable = schema.uploadable_fields
        tables.append({
            "name": schema.name,
            "displayName": schema.display_name,
            "totalFields": len(schema.fields),
            "uploadableFields": len(uploadable),
            "relationships": len(schema.relationships),
            "fields": [spec.describe() for spec in uploadable],
            "sampleRow": {spec.name: spec.to_cell(spec.sample()) for spec in uploadable},
            "policy": registry.policy(schema.name).describe(),
        })
    return jsonify({"tables": tables, "count": len(tables)}), 200


@data_exchange_bp.route("/tables/<table>/fields/<field>", methods=["GET"])
def field_info(table, field):
    spec = get_registry().field(table, field)
    return jsonify({"table": table, "field": spec.describe(), "sample": spec.to_cell(spec.sample())}), 200


# ═══════════════════════════════════════════════════════════════
# Templates
# ═══════════════════════════════════════════════════════════════
@data_exchange_bp.route("/templates", methods=["GET"])
def download_all_templates():
    wb = export_engine().generate_all_templates()
    return _xlsx_response(wb, "buildtrack_templates.xlsx")


@data_exchange_bp.route("/templates/<table>", methods=["GET"])
def download_template(table):
    wb = export_engine().generate_template(table)
    return _xlsx_response(wb, f"{table}_template.xlsx")


# ═══════════════════════════════════════════════════════════════
# Validate (dry run) & Upload
# ═══════════════════════════════════════════════════════════════
@data_exchange_bp.route("/validate", methods=["POST"])
def validate_workbook():
    """Detect and validate an uploaded workbook without importing it."""
    sheets, error = _read_upload()
    if error:
        return error
    result = import_orchestrator().validate_workbook(sheets, target_table=_target_table())
    return jsonify(result), 200


@data_exchange_bp.route("/upload", methods=["POST"])
def upload_workbook():
    """Import an uploaded workbook.

    200 when every row was written, 207 on partial success, 400 when
    nothing could be imported.
    """
    sheets, error = _read_upload()
    if error:
        return error

    summary = import_orchestrator().import_workbook(sheets, target_table=_target_table())
    if summary.total_successful == 0:
        status_code = 400
    elif summary.total_failed or summary.skipped:
        status_code = 207
    else:
        status_code = 200

    message = (
        f"Imported {summary.total_successful} of {summary.total_records} rows "
        f"from {len(summary.sheets)} sheets"
    )
    return jsonify({"message": message, "summary": summary.to_dict()}), status_code


# ═══════════════════════════════════════════════════════════════
# Export
# ═══════════════════════════════════════════════════════════════
@data_exchange_bp.route("/export", methods=["GET"])
def export_all():
    wb, summary = export_engine().export_all()
    response = _xlsx_response(wb, "buildtrack_export.xlsx")
    response.headers["X-Exported-Tables"] = ",".join(summary.exported)
    response.headers["X-Failed-Tables"] = ",".join(item["table"] for item in summary.failed)
    return response


@data_exchange_bp.route("/export/<table>", methods=["GET"])
def export_table(table):
    wb = export_engine().export_table(table)
    return _xlsx_response(wb, f"{table}_export.xlsx")


# ═══════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════
def _xlsx_response(wb, filename: str) -> Response:
    return Response(
        workbook_to_bytes(wb),
        mimetype=XLSX_MIMETYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


def _target_table() -> str | None:
    return request.form.get("table") or request.args.get("table") or None


def _read_upload():
    """Return ``(sheets, None)`` or ``(None, error response)``."""
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return None, api_error(E.VALIDATION_REQUIRED, "A workbook must be uploaded in the 'file' field")

    allowed = current_app.config.get("DATA_EXCHANGE_ALLOWED_EXTENSIONS", (".xlsx", ".xlsm", ".csv"))
    ext = os.path.splitext(upload.filename)[1].lower()
    if ext not in allowed:
        return None, api_error(
            E.VALIDATION_INVALID,
            f"Unsupported file type '{ext or upload.filename}'",
            details={"allowed": list(allowed)},
        )

    content = upload.read()
    if not content:
        return None, api_error(E.VALIDATION_REQUIRED, "Uploaded file is empty")

    logger.info("Workbook received: %s (%d bytes)", upload.filename, len(content))
    return read_workbook(content, upload.filename), None
