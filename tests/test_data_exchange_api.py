"""
Tests for the data-exchange HTTP endpoints and CLI commands.

Covers:
  - Registry listing and field metadata
  - Template downloads
  - Upload: file checks, status codes for full / partial / failed imports,
    CSV uploads, explicit target table
  - Dry-run validation
  - Export downloads and their headers
  - Health endpoint, request id header, rate limiting off under test
  - import-workbook / export-workbook CLI commands
"""

import io
import json

from openpyxl import Workbook, load_workbook

from buildtrack.models.directory import User

BASE = "/api/v1/data-exchange"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _xlsx(sheets):
    """Workbook bytes from ``{sheet name: [header row, data row, ...]}``."""
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _upload(client, content, filename="data.xlsx", url=f"{BASE}/upload", **form):
    data = {"file": (io.BytesIO(content), filename), **form}
    return client.post(url, data=data, content_type="multipart/form-data")


USERS_SHEET = [
    ["firstName", "lastName", "email", "role"],
    ["Ann", "Lee", "ann@example.com", "manager"],
    ["Bob", "Ray", "bob@example.com", "foreman"],
]


# ── Registry ────────────────────────────────────────────────────────────


def test_list_tables(client):
    res = client.get(f"{BASE}/tables")
    assert res.status_code == 200
    body = res.get_json()
    assert body["count"] == 29
    users = body["tables"][0]
    assert users["name"] == "users"
    assert users["policy"]["kind"] == "natural_key"
    assert users["policy"]["identity"] == ["email"]
    assert users["totalFields"] == users["uploadableFields"] + 3
    assert users["sampleRow"]["email"] == "sample@example.com"

    line_items = next(t for t in body["tables"] if t["name"] == "workflow_line_items")
    assert line_items["displayName"] == "Workflow Line Items"
    assert line_items["relationships"] == 1


def test_field_info(client):
    res = client.get(f"{BASE}/tables/projects/fields/customerId")
    assert res.status_code == 200
    body = res.get_json()
    assert body["field"]["references"] == "customers"
    assert body["field"]["required"] is True
    assert body["sample"] == "Sample customerId"


def test_field_info_unknown(client):
    res = client.get(f"{BASE}/tables/projects/fields/nope")
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_NOT_FOUND"
    assert client.get(f"{BASE}/tables/widgets/fields/id").status_code == 404


# ── Templates ───────────────────────────────────────────────────────────


def test_download_template(client):
    res = client.get(f"{BASE}/templates/users")
    assert res.status_code == 200
    assert res.mimetype == XLSX
    assert "users_template.xlsx" in res.headers["Content-Disposition"]
    wb = load_workbook(io.BytesIO(res.data))
    assert wb.sheetnames == ["users"]


def test_download_all_templates(client):
    res = client.get(f"{BASE}/templates")
    assert res.status_code == 200
    assert len(load_workbook(io.BytesIO(res.data)).sheetnames) == 29


def test_download_template_unknown_table(client):
    res = client.get(f"{BASE}/templates/widgets")
    assert res.status_code == 404


# ── Upload ──────────────────────────────────────────────────────────────


def test_upload_requires_file(client):
    res = client.post(f"{BASE}/upload", data={}, content_type="multipart/form-data")
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"


def test_upload_rejects_unknown_extension(client):
    res = _upload(client, b"hello", filename="notes.txt")
    assert res.status_code == 400
    assert ".txt" in res.get_json()["error"]


def test_upload_rejects_empty_file(client):
    res = _upload(client, b"")
    assert res.status_code == 400


def test_upload_rejects_corrupt_workbook(client):
    res = _upload(client, b"definitely not a zip file")
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"


def test_upload_success(client):
    res = _upload(client, _xlsx({"Users": USERS_SHEET}))
    assert res.status_code == 200
    body = res.get_json()
    assert body["summary"]["status"] == "completed"
    assert body["summary"]["totalSuccessful"] == 2
    assert "Imported 2 of 2 rows" in body["message"]
    assert {u.role for u in User.query.all()} == {"MANAGER", "FOREMAN"}


def test_upload_partial_success(client):
    sheet = USERS_SHEET + [["", "Nobody", "not-an-email", ""]]
    res = _upload(client, _xlsx({"users": sheet}))
    assert res.status_code == 207
    errors = res.get_json()["summary"]["sheets"][0]["errors"]
    assert errors == [{"row": 3, "error": "firstName is required; email must be a valid email address"}]


def test_upload_with_skipped_sheet_is_partial(client):
    res = _upload(client, _xlsx({"users": USERS_SHEET, "Mystery": [["foo"], ["bar"]]}))
    assert res.status_code == 207
    assert res.get_json()["summary"]["skipped"][0]["sheetName"] == "Mystery"


def test_upload_all_rows_invalid(client):
    res = _upload(client, _xlsx({"users": [["firstName", "email"], ["", "bad"]]}))
    assert res.status_code == 400
    assert res.get_json()["summary"]["status"] == "failed"


def test_upload_without_data_rows(client):
    res = _upload(client, _xlsx({"users": [["firstName", "email"]]}))
    assert res.status_code == 400
    assert res.get_json()["error"] == "Workbook contains no data rows"


def test_upload_csv(client):
    content = "firstName,email\nAnn,ann@example.com\n".encode("utf-8-sig")
    res = _upload(client, content, filename="users.csv")
    assert res.status_code == 200
    assert res.get_json()["summary"]["sheets"][0]["sheetName"] == "users"
    assert User.query.one().email == "ann@example.com"


def test_upload_with_target_table(client):
    res = _upload(client, _xlsx({"Sheet1": USERS_SHEET}), table="users")
    assert res.status_code == 200
    assert User.query.count() == 2


def test_upload_with_unknown_target_table(client):
    res = _upload(client, _xlsx({"Sheet1": USERS_SHEET}), table="widgets")
    assert res.status_code == 404


# ── Validate ────────────────────────────────────────────────────────────


def test_validate_endpoint(client):
    sheet = USERS_SHEET + [["Cy", "Lo", "nope", "king"]]
    res = _upload(client, _xlsx({"users": sheet}), url=f"{BASE}/validate")
    assert res.status_code == 200
    body = res.get_json()
    assert body["valid"] is False
    assert body["sheets"][0]["validRows"] == 2
    assert body["sheets"][0]["errors"][0] == "Row 3: email must be a valid email address"
    assert User.query.count() == 0


# ── Export ──────────────────────────────────────────────────────────────


def test_export_without_data(client):
    res = client.get(f"{BASE}/export")
    assert res.status_code == 404


def test_export_after_import(client):
    _upload(client, _xlsx({"users": USERS_SHEET}))
    res = client.get(f"{BASE}/export")
    assert res.status_code == 200
    assert res.mimetype == XLSX
    assert res.headers["X-Exported-Tables"] == "users"
    assert res.headers["X-Failed-Tables"] == ""
    wb = load_workbook(io.BytesIO(res.data))
    assert wb.sheetnames == ["users"]
    assert wb["users"].max_row == 3


def test_export_single_table(client):
    _upload(client, _xlsx({"users": USERS_SHEET}))
    res = client.get(f"{BASE}/export/users")
    assert res.status_code == 200
    assert "users_export.xlsx" in res.headers["Content-Disposition"]


def test_export_registry_only_table(client):
    res = client.get(f"{BASE}/export/documents")
    assert res.status_code == 400
    assert "No backing model" in res.get_json()["error"]


# ── App surface ─────────────────────────────────────────────────────────


def test_health(client):
    res = client.get("/api/v1/health")
    assert res.status_code == 200
    assert res.get_json()["status"] == "ok"


def test_request_id_header(client):
    res = client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
    assert res.headers["X-Request-ID"] == "req-123"
    assert "X-Request-Duration-Ms" in res.headers


def test_unknown_route(client):
    res = client.get("/api/v1/nowhere")
    assert res.status_code == 404
    assert res.get_json()["path"] == "/api/v1/nowhere"


# ── CLI ─────────────────────────────────────────────────────────────────


def test_cli_import_and_export(app, tmp_path):
    source = tmp_path / "users.xlsx"
    source.write_bytes(_xlsx({"users": USERS_SHEET}))
    runner = app.test_cli_runner()

    result = runner.invoke(args=["import-workbook", str(source)])
    assert result.exit_code == 0, result.output
    summary = json.loads(result.output)
    assert summary["totalSuccessful"] == 2

    target = tmp_path / "out.xlsx"
    result = runner.invoke(args=["export-workbook", str(target)])
    assert result.exit_code == 0, result.output
    assert load_workbook(target).sheetnames == ["users"]


def test_cli_import_reports_failures(app, tmp_path):
    source = tmp_path / "users.csv"
    source.write_text("firstName,email\n,bad\n", encoding="utf-8")
    result = app.test_cli_runner().invoke(args=["import-workbook", str(source)])
    assert result.exit_code == 1


def test_rate_limits_disabled_in_testing(app):
    assert app.config["RATELIMIT_ENABLED"] is False
    for _ in range(40):
        assert _upload(app.test_client(), _xlsx({"users": USERS_SHEET})).status_code == 200
