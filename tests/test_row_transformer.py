"""
Tests for the row transformer / validator.

Covers:
  - Absent headers stay absent; blank cells become explicit None
  - Per-type conversion (text, email, booleans, numbers, timestamps,
    string sets, enum sets, JSON)
  - Error messages for required, email, phone, enum, length and range checks
  - Numeric parse failures are reported, never raised
  - Supplied primary key normalisation
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from buildtrack.services.data_exchange.transformer import supplied_id, transform_row


def _user(**overrides):
    row = {"firstName": "Ann", "email": "ann@example.com"}
    row.update(overrides)
    return row


# ── Presence semantics ──────────────────────────────────────────────────


def test_absent_fields_are_omitted(registry):
    result = transform_row(registry, "users", _user())
    assert result.ok
    assert result.record == {"firstName": "Ann", "email": "ann@example.com"}


def test_blank_cells_become_none(registry):
    result = transform_row(registry, "users", _user(phone="", position="   "))
    assert result.ok
    assert result.record["phone"] is None
    assert result.record["position"] is None


def test_primary_key_and_timestamps_are_not_transformed(registry):
    result = transform_row(registry, "users", _user(id="u-1", createdAt="2024-01-01"))
    assert "id" not in result.record
    assert "createdAt" not in result.record


# ── Conversions ─────────────────────────────────────────────────────────


def test_email_is_trimmed_and_lowercased(registry):
    result = transform_row(registry, "users", _user(email="  Ann@Example.COM "))
    assert result.record["email"] == "ann@example.com"


@pytest.mark.parametrize("raw, expected", [
    ("yes", True), ("TRUE", True), ("1", True), ("on", True),
    ("no", False), ("false", False), (0, False), (1, True), (True, True),
])
def test_boolean_conversion(registry, raw, expected):
    result = transform_row(registry, "users", _user(isActive=raw))
    assert result.record["isActive"] is expected


def test_integral_float_text_drops_decimal_part(registry):
    # Numeric cells that land in text fields (e.g. section numbers)
    result = transform_row(registry, "workflow_sections", {
        "sectionNumber": 1.0, "sectionName": "Intake", "phaseId": "p1",
    })
    assert result.record["sectionNumber"] == "1"


def test_integer_and_decimal_conversion(registry):
    result = transform_row(registry, "projects", {
        "projectNumber": "1042", "budget": "2500.50", "progress": 40.0,
    })
    assert result.ok
    assert result.record["projectNumber"] == 1042
    assert result.record["budget"] == Decimal("2500.50")
    assert result.record["progress"] == 40


@pytest.mark.parametrize("raw, expected", [
    ("2025-03-01T10:00:00Z", datetime(2025, 3, 1, 10, 0)),
    ("2025-03-01", datetime(2025, 3, 1)),
    ("2025-03-01T10:11:12.345678", datetime(2025, 3, 1, 10, 11, 12, 345000)),
    ("03/15/2025", datetime(2025, 3, 15)),
    ("15.03.2025", datetime(2025, 3, 15)),
    (datetime(2025, 3, 1, 12, tzinfo=timezone.utc), datetime(2025, 3, 1, 12)),
])
def test_timestamp_conversion(registry, raw, expected):
    result = transform_row(registry, "projects", {"startDate": raw})
    assert result.record["startDate"] == expected


def test_unparsable_timestamp_becomes_none(registry):
    result = transform_row(registry, "projects", {"startDate": "next tuesday"})
    assert result.record["startDate"] is None
    assert result.ok


def test_string_set_splits_on_commas(registry):
    result = transform_row(registry, "users", _user(skills="roofing, siding,,  gutters "))
    assert result.record["skills"] == ["roofing", "siding", "gutters"]


def test_enum_set_keeps_only_domain_members(registry):
    result = transform_row(registry, "users", _user(permissions="create_projects, fly, VIEW_REPORTS"))
    assert result.record["permissions"] == ["CREATE_PROJECTS", "VIEW_REPORTS"]


def test_json_conversion(registry):
    ok = transform_row(registry, "users", _user(notificationPreferences='{"email": true}'))
    bad = transform_row(registry, "users", _user(notificationPreferences="{not json"))
    assert ok.record["notificationPreferences"] == {"email": True}
    assert bad.record["notificationPreferences"] is None
    assert bad.ok


def test_enum_value_is_uppercased(registry):
    result = transform_row(registry, "users", _user(role="manager"))
    assert result.ok
    assert result.record["role"] == "MANAGER"


# ── Validation messages ─────────────────────────────────────────────────


def test_missing_required_field(registry):
    result = transform_row(registry, "users", {"email": "ann@example.com"})
    assert result.errors == ["firstName is required"]


def test_invalid_email(registry):
    result = transform_row(registry, "users", _user(email="not-an-email"))
    assert result.errors == ["email must be a valid email address"]


def test_invalid_phone(registry):
    result = transform_row(registry, "users", _user(phone="12-34"))
    assert result.errors == ["phone must be a valid phone number"]


def test_valid_phone_formats(registry):
    for phone in ("(719) 555-0100", "+1 719 555 0100", "7195550100"):
        assert transform_row(registry, "users", _user(phone=phone)).ok


def test_enum_outside_domain(registry):
    result = transform_row(registry, "users", _user(role="king"))
    assert len(result.errors) == 1
    assert result.errors[0].startswith("role must be one of: WORKER, ADMIN")


def test_max_length(registry):
    result = transform_row(registry, "users", _user(firstName="x" * 51))
    assert result.errors == ["firstName must be 50 characters or less"]


def test_percentage_out_of_range(registry):
    result = transform_row(registry, "projects", {"progress": 150})
    assert result.errors == ["progress must be between 0 and 100"]


def test_unparsable_integer_is_reported(registry):
    result = transform_row(registry, "users", _user(experience="a lot"))
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Error processing experience:")
    assert result.record["experience"] is None


def test_unparsable_required_number_still_runs_validators(registry):
    result = transform_row(registry, "documents", {"fileSize": "big"})
    assert result.record["fileSize"] is None
    assert any(e.startswith("Error processing fileSize:") for e in result.errors)
    assert "fileSize is required" in result.errors


def test_unparsable_decimal_is_reported(registry):
    result = transform_row(registry, "projects", {"budget": "ten grand"})
    assert result.errors[0].startswith("Error processing budget:")


def test_all_errors_are_collected(registry):
    result = transform_row(registry, "users", {"email": "nope", "role": "king"})
    assert "firstName is required" in result.errors
    assert "email must be a valid email address" in result.errors
    assert len(result.errors) == 3


# ── Supplied id ─────────────────────────────────────────────────────────


@pytest.mark.parametrize("raw, expected", [
    ({"id": "abc-1"}, "abc-1"),
    ({"id": 12.0}, "12"),
    ({"id": "  "}, None),
    ({}, None),
])
def test_supplied_id(registry, raw, expected):
    assert supplied_id(registry, "users", raw) == expected
