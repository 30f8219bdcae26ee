"""
Tests for the per-table upsert policies, driven through full imports.

Covers:
  - Natural keys: case-insensitive email match, last write wins
  - Surrogate keys: project numbers minted above the floor / persisted max
  - Composite keys: match on (phase, number), id remap into child rows
  - Cleanup: unreferenced stale sections deleted, referenced ones kept
  - Ensure: dangling parents replaced by exactly one stub (transitively)
  - Parent identity hints carried by child rows
  - Append-only tables never deduplicate
  - Re-importing the same workbook is idempotent
"""

from datetime import datetime

from buildtrack.models import db
from buildtrack.models.communication import ProjectMessage
from buildtrack.models.directory import Customer, RoleAssignment, User
from buildtrack.models.project import Project, ProjectTeamMember, Task
from buildtrack.models.workflow import (
    ProjectWorkflowTracker,
    WorkflowAlert,
    WorkflowLineItem,
    WorkflowPhase,
    WorkflowSection,
)


# ── Helpers ─────────────────────────────────────────────────────────────────


def _make_customer(cid="c-1", email="owner@example.com"):
    customer = Customer(id=cid, primary_name="Owner", primary_email=email,
                        primary_phone="7195550100", address="1 Main St")
    db.session.add(customer)
    db.session.commit()
    return customer


def _make_project(pid="p-1", number=1001, customer_id="c-1"):
    project = Project(id=pid, project_number=number, project_name=f"Job {number}",
                      project_type="ROOF_REPLACEMENT", budget=0, customer_id=customer_id,
                      start_date=datetime(2025, 1, 1), end_date=datetime(2025, 2, 1))
    db.session.add(project)
    db.session.commit()
    return project


def _make_user(uid="u-1", email="crew@example.com"):
    user = User(id=uid, first_name="Crew", last_name="Lead", email=email)
    db.session.add(user)
    db.session.commit()
    return user


def _make_phase(pid="p1", phase_type="LEAD"):
    phase = WorkflowPhase(id=pid, phase_name=phase_type.title(), phase_type=phase_type)
    db.session.add(phase)
    db.session.commit()
    return phase


def _make_section(sid, number, phase_id="p1"):
    section = WorkflowSection(id=sid, section_number=number, section_name=f"Section {number}",
                              phase_id=phase_id)
    db.session.add(section)
    db.session.commit()
    return section


def _make_line_item(lid, section_id, letter="a"):
    item = WorkflowLineItem(id=lid, item_letter=letter, item_name=f"Item {letter}", section_id=section_id)
    db.session.add(item)
    db.session.commit()
    return item


def _sheet(summary, table):
    return next(s for s in summary.sheets if s.target_table == table)


# ── Natural key ─────────────────────────────────────────────────────────────


def test_users_match_case_insensitively_and_last_write_wins(orchestrator):
    summary = orchestrator.import_workbook({"users": [
        {"firstName": "A", "email": "A@x.com"},
        {"firstName": "B", "email": "a@x.com"},
    ]})
    users = User.query.all()
    assert len(users) == 1
    assert users[0].first_name == "B"
    assert users[0].email == "a@x.com"
    sheet = _sheet(summary, "users")
    assert (sheet.created, sheet.updated, sheet.failed) == (1, 1, 0)


def test_natural_key_matches_existing_record_under_different_id(orchestrator):
    _make_user("u-1", "crew@example.com")
    orchestrator.import_workbook({"users": [
        {"id": "other-id", "firstName": "Renamed", "email": "CREW@example.com"},
    ]})
    user = db.session.get(User, "u-1")
    assert user.first_name == "Renamed"
    assert User.query.count() == 1


def test_supplied_id_is_kept_on_create(orchestrator):
    orchestrator.import_workbook({"users": [{"id": "user-42", "firstName": "N", "email": "n@example.com"}]})
    assert db.session.get(User, "user-42") is not None


def test_unusable_supplied_id_is_replaced(orchestrator):
    orchestrator.import_workbook({"users": [{"id": "bad id!", "firstName": "N", "email": "n@example.com"}]})
    user = User.query.one()
    assert user.id != "bad id!"


def test_taken_id_with_new_email_creates_another_user(orchestrator):
    _make_user("u-1", "x@example.com")
    summary = orchestrator.import_workbook({"users": [
        {"id": "u-1", "firstName": "Y", "email": "y@example.com"},
    ]})
    assert User.query.count() == 2
    assert db.session.get(User, "u-1").email == "x@example.com"
    assert User.query.filter_by(email="y@example.com").one().id != "u-1"
    assert _sheet(summary, "users").created == 1


def test_phase_matched_by_phase_type(orchestrator):
    _make_phase("p1", "LEAD")
    orchestrator.import_workbook({"workflow_phases": [
        {"id": "x-lead", "phaseName": "Lead Intake", "phaseType": "LEAD", "displayOrder": 1},
    ]})
    phase = WorkflowPhase.query.one()
    assert phase.id == "p1"
    assert phase.phase_name == "Lead Intake"


# ── Surrogate key ───────────────────────────────────────────────────────────


def test_project_number_minted_from_floor(orchestrator):
    summary = orchestrator.import_workbook({"projects": [
        {"projectName": "Smith Roof"},
        {"projectName": "Jones Deck"},
    ]})
    numbers = sorted(p.project_number for p in Project.query.all())
    assert numbers == [90000, 90001]
    # Each project got a stub customer
    assert summary.stubs_created == {"customers": 2}
    assert Customer.query.count() == 2


def test_project_number_minted_above_persisted_max(orchestrator):
    _make_customer()
    _make_project("p-1", 95000)
    orchestrator.import_workbook({"projects": [{"projectName": "Next", "customerId": "c-1"}]})
    assert Project.query.filter_by(project_name="Next").one().project_number == 95001


def test_project_number_minted_above_numbers_in_the_upload(orchestrator):
    _make_customer()
    orchestrator.import_workbook({"projects": [
        {"projectNumber": 90500, "projectName": "Given", "customerId": "c-1"},
        {"projectName": "Minted", "customerId": "c-1"},
    ]})
    assert Project.query.filter_by(project_name="Minted").one().project_number == 90501


def test_project_matched_by_number(orchestrator):
    _make_customer()
    _make_project("p-1", 1001)
    summary = orchestrator.import_workbook({"projects": [
        {"projectNumber": 1001, "projectName": "Renamed Job", "customerId": "c-1"},
    ]})
    assert Project.query.count() == 1
    assert db.session.get(Project, "p-1").project_name == "Renamed Job"
    assert _sheet(summary, "projects").updated == 1


def test_project_with_new_number_and_taken_id_is_created(orchestrator):
    _make_customer()
    _make_project("p-1", 1001)
    orchestrator.import_workbook({"projects": [
        {"id": "p-1", "projectNumber": 2002, "projectName": "Other Job", "customerId": "c-1"},
    ]})
    assert Project.query.count() == 2
    assert db.session.get(Project, "p-1").project_number == 1001
    assert Project.query.filter_by(project_number=2002).one().id != "p-1"


def test_project_with_dangling_customer_gets_stub(orchestrator):
    orchestrator.import_workbook({"projects": [{"projectName": "Orphan", "customerId": "cust-gone"}]})
    project = Project.query.one()
    assert project.customer_id == "cust-gone"
    stub = db.session.get(Customer, "cust-gone")
    assert stub.primary_name == "Seed Customer"
    assert stub.primary_email.startswith("seed-customer-")


# ── Composite key & remap ───────────────────────────────────────────────────


def test_section_remap_flows_into_line_items(orchestrator):
    _make_phase("p1")
    _make_section("real-1", "1")
    summary = orchestrator.import_workbook({
        "workflow_sections": [{"id": "old-1", "phaseId": "p1", "sectionNumber": "1", "sectionName": "X"}],
        "workflow_line_items": [{"sectionId": "old-1", "itemLetter": "a", "itemName": "Y"}],
    })
    assert summary.total_failed == 0
    section = WorkflowSection.query.one()
    assert section.id == "real-1"
    assert section.section_name == "X"
    item = WorkflowLineItem.query.one()
    assert item.section_id == "real-1"
    assert item.responsible_role == "OFFICE"


def test_line_item_matched_by_section_and_letter(orchestrator):
    _make_phase("p1")
    _make_section("s1", "1")
    _make_line_item("li-1", "s1", "a")
    orchestrator.import_workbook({"workflow_line_items": [
        {"id": "li-new", "sectionId": "s1", "itemLetter": "a", "itemName": "Updated"},
    ]})
    item = WorkflowLineItem.query.one()
    assert item.id == "li-1"
    assert item.item_name == "Updated"


def test_team_member_composite_key(orchestrator):
    _make_customer()
    _make_project()
    _make_user()
    row = {"projectId": "p-1", "userId": "u-1", "role": "Foreman"}
    orchestrator.import_workbook({"project_team_members": [row, dict(row, role="Lead")]})
    member = ProjectTeamMember.query.one()
    assert member.role == "Lead"


# ── Cleanup ─────────────────────────────────────────────────────────────────


def test_cleanup_deletes_only_unreferenced_stale_sections(orchestrator):
    _make_phase("p1")
    _make_section("s1", "1")
    _make_section("s2", "2")
    _make_section("s3", "3")
    _make_line_item("li-2", "s2")

    summary = orchestrator.import_workbook({"workflow_sections": [
        {"phaseId": "p1", "sectionNumber": "1", "sectionName": "Intake"},
    ]})

    remaining = {s.id for s in WorkflowSection.query.all()}
    assert remaining == {"s1", "s2"}
    assert _sheet(summary, "workflow_sections").cleanup_deleted == 1


def test_cleanup_keeps_sections_referenced_by_trackers(orchestrator):
    _make_customer()
    _make_project()
    _make_phase("p1")
    _make_section("s1", "1")
    _make_section("s2", "2")
    db.session.add(ProjectWorkflowTracker(project_id="p-1", current_section_id="s2"))
    db.session.commit()

    orchestrator.import_workbook({"workflow_sections": [
        {"phaseId": "p1", "sectionNumber": "1", "sectionName": "Intake"},
    ]})
    assert {s.id for s in WorkflowSection.query.all()} == {"s1", "s2"}


def test_line_item_cleanup(orchestrator):
    _make_phase("p1")
    _make_section("s1", "1")
    _make_line_item("li-a", "s1", "a")
    _make_line_item("li-b", "s1", "b")
    summary = orchestrator.import_workbook({"workflow_line_items": [
        {"sectionId": "s1", "itemLetter": "a", "itemName": "Keep"},
    ]})
    assert [i.id for i in WorkflowLineItem.query.all()] == ["li-a"]
    assert _sheet(summary, "workflow_line_items").cleanup_deleted == 1


def test_no_cleanup_when_every_row_failed(orchestrator):
    _make_phase("p1")
    _make_section("s1", "1")
    orchestrator.import_workbook({"workflow_sections": [{"phaseId": "p1", "sectionNumber": "9"}]})
    assert WorkflowSection.query.count() == 1


# ── Ensure-dependent ────────────────────────────────────────────────────────


def test_alert_with_dangling_project_creates_one_stub(orchestrator):
    summary = orchestrator.import_workbook({"workflow_alerts": [
        {"title": "Call", "message": "Call the owner", "stepName": "Intake", "projectId": "proj-missing"},
        {"title": "Visit", "message": "Site visit", "stepName": "Inspect", "projectId": "proj-missing"},
    ]})
    assert summary.total_failed == 0
    assert Project.query.count() == 1
    project = db.session.get(Project, "proj-missing")
    assert project.project_number == 90000
    assert project.project_name == "Seed Project 90000"
    assert WorkflowAlert.query.filter_by(project_id="proj-missing").count() == 2
    assert summary.stubs_created == {"projects": 1, "customers": 1}


def test_unusable_dangling_id_is_remapped_to_one_stub(orchestrator):
    orchestrator.import_workbook({"workflow_alerts": [
        {"title": "A", "message": "m", "stepName": "s", "projectId": "no such project"},
        {"title": "B", "message": "m", "stepName": "s", "projectId": "no such project"},
    ]})
    assert Project.query.count() == 1
    project_ids = {a.project_id for a in WorkflowAlert.query.all()}
    assert project_ids == {Project.query.one().id}


def test_alert_updated_by_supplied_id(orchestrator):
    _make_customer()
    _make_project()
    row = {"id": "al-1", "title": "Call", "message": "m", "stepName": "s", "projectId": "p-1"}
    orchestrator.import_workbook({"workflow_alerts": [row]})
    orchestrator.import_workbook({"workflow_alerts": [dict(row, title="Call again")]})
    alert = WorkflowAlert.query.one()
    assert alert.id == "al-1"
    assert alert.title == "Call again"


def test_message_uses_project_number_hint(orchestrator):
    _make_customer()
    _make_project("p-4242", 4242)
    summary = orchestrator.import_workbook({"project_messages": [{
        "content": "Shingles delivered", "subject": "Delivery", "authorName": "Ops",
        "projectId": "ghost", "projectNumber": 4242,
    }]})
    message = ProjectMessage.query.one()
    assert message.project_id == "p-4242"
    assert summary.stubs_created == {}


def test_tracker_matched_by_project(orchestrator):
    _make_customer()
    _make_project()
    _make_phase("p1")
    orchestrator.import_workbook({"project_workflow_trackers": [
        {"id": "t-1", "projectId": "p-1"},
        {"id": "t-2", "projectId": "p-1", "currentPhaseId": "p1"},
    ]})
    tracker = ProjectWorkflowTracker.query.one()
    assert tracker.id == "t-1"
    assert tracker.current_phase_id == "p1"


def test_completed_item_ensures_tracker_project_and_customer(orchestrator):
    _make_phase("p1")
    _make_section("s1", "1")
    _make_line_item("li-1", "s1")
    summary = orchestrator.import_workbook({"completed_workflow_items": [
        {"trackerId": "trk-x", "phaseId": "p1", "sectionId": "s1", "lineItemId": "li-1"},
    ]})
    assert summary.total_failed == 0
    assert summary.stubs_created == {
        "project_workflow_trackers": 1, "projects": 1, "customers": 1,
    }
    assert db.session.get(ProjectWorkflowTracker, "trk-x").project_id == Project.query.one().id


def test_role_assignment_ensures_users(orchestrator):
    summary = orchestrator.import_workbook({"role_assignments": [
        {"roleType": "PROJECT_MANAGER", "userId": "u-missing"},
    ]})
    assignment = RoleAssignment.query.one()
    assert assignment.user_id == "u-missing"
    user = db.session.get(User, "u-missing")
    assert user.email.startswith("seed-user-")
    assert (user.first_name, user.last_name) == ("Seed", "User")
    assert summary.stubs_created == {"users": 1}


# ── Append-only ─────────────────────────────────────────────────────────────


def test_tasks_are_never_deduplicated(orchestrator):
    _make_customer()
    _make_project()
    _make_user()
    row = {"title": "Order shingles", "dueDate": "2025-05-01", "projectId": "p-1", "assignedToId": "u-1"}
    orchestrator.import_workbook({"tasks": [row, row]})
    assert Task.query.count() == 2


def test_append_only_with_taken_id_gets_fresh_id(orchestrator):
    _make_customer()
    _make_project()
    _make_user()
    row = {"id": "task-1", "title": "T", "dueDate": "2025-05-01", "projectId": "p-1", "assignedToId": "u-1"}
    orchestrator.import_workbook({"tasks": [row]})
    orchestrator.import_workbook({"tasks": [row]})
    ids = {t.id for t in Task.query.all()}
    assert len(ids) == 2
    assert "task-1" in ids


# ── Idempotence ─────────────────────────────────────────────────────────────


def test_reimport_is_idempotent(orchestrator):
    workbook = {
        "users": [{"firstName": "Ann", "email": "ann@example.com"}],
        "customers": [{"primaryName": "Owner", "primaryEmail": "owner@example.com", "address": "1 Main"}],
        "workflow_phases": [{"phaseName": "Lead", "phaseType": "LEAD"}],
    }
    orchestrator.import_workbook(workbook)
    counts = (User.query.count(), Customer.query.count(), WorkflowPhase.query.count())

    summary = orchestrator.import_workbook(workbook)

    assert (User.query.count(), Customer.query.count(), WorkflowPhase.query.count()) == counts
    assert all(s.created == 0 and s.updated == s.total_rows for s in summary.sheets)
