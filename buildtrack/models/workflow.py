"""
Workflow models — the phase → section → line item checklist every project
walks through, and the per-project progress through it.

    workflow_phases            LEAD, PROSPECT, ... (``phase_type`` unique)
    workflow_sections          numbered sections of a phase
    workflow_line_items        lettered items of a section
    project_workflow_trackers  one per project, points at the current item
    completed_workflow_items   audit trail of finished items
    workflow_alerts            reminders raised for outstanding items
"""

from buildtrack.models import db
from buildtrack.models.base import RecordModel, TimestampedRecordModel


# ═══════════════════════════════════════════════════════════════
# CHECKLIST DEFINITION
# ═══════════════════════════════════════════════════════════════
class WorkflowPhase(TimestampedRecordModel):
    __tablename__ = "workflow_phases"

    phase_name = db.Column(db.String(100), nullable=False)
    phase_type = db.Column(db.String(30), unique=True, nullable=False)
    display_order = db.Column(db.Integer, default=0)
    description = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, default=True)


class WorkflowSection(TimestampedRecordModel):
    __tablename__ = "workflow_sections"
    __table_args__ = (
        db.UniqueConstraint("phase_id", "section_number", name="uq_section_phase_number"),
    )

    section_number = db.Column(db.String(10), nullable=False)
    section_name = db.Column(db.String(200), nullable=False)
    display_name = db.Column(db.String(255))
    display_order = db.Column(db.Integer, default=0)
    description = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, default=True)
    phase_id = db.Column(db.String(64), db.ForeignKey("workflow_phases.id"), nullable=False, index=True)


class WorkflowLineItem(TimestampedRecordModel):
    __tablename__ = "workflow_line_items"
    __table_args__ = (
        db.UniqueConstraint("section_id", "item_letter", name="uq_line_item_section_letter"),
    )

    item_letter = db.Column(db.String(10), nullable=False)
    item_name = db.Column(db.String(500), nullable=False)
    responsible_role = db.Column(db.String(30), nullable=False, default="OFFICE")
    display_order = db.Column(db.Integer, default=0)
    description = db.Column(db.String(1000))
    is_active = db.Column(db.Boolean, default=True)
    estimated_minutes = db.Column(db.Integer, default=30)
    alert_days = db.Column(db.Integer, default=1)
    section_id = db.Column(db.String(64), db.ForeignKey("workflow_sections.id"), nullable=False, index=True)


# ═══════════════════════════════════════════════════════════════
# PER-PROJECT PROGRESS
# ═══════════════════════════════════════════════════════════════
class ProjectWorkflowTracker(TimestampedRecordModel):
    __tablename__ = "project_workflow_trackers"

    project_id = db.Column(db.String(64), db.ForeignKey("projects.id"), unique=True, nullable=False)
    current_phase_id = db.Column(db.String(64), db.ForeignKey("workflow_phases.id"))
    current_section_id = db.Column(db.String(64), db.ForeignKey("workflow_sections.id"))
    current_line_item_id = db.Column(db.String(64), db.ForeignKey("workflow_line_items.id"))
    last_completed_item_id = db.Column(db.String(64))
    phase_started_at = db.Column(db.DateTime)
    section_started_at = db.Column(db.DateTime)
    line_item_started_at = db.Column(db.DateTime)


class CompletedWorkflowItem(RecordModel):
    __tablename__ = "completed_workflow_items"

    tracker_id = db.Column(
        db.String(64), db.ForeignKey("project_workflow_trackers.id"), nullable=False, index=True,
    )
    phase_id = db.Column(db.String(64), db.ForeignKey("workflow_phases.id"), nullable=False)
    section_id = db.Column(db.String(64), db.ForeignKey("workflow_sections.id"), nullable=False)
    line_item_id = db.Column(db.String(64), db.ForeignKey("workflow_line_items.id"), nullable=False)
    completed_at = db.Column(db.DateTime, nullable=False)
    completed_by_id = db.Column(db.String(64), db.ForeignKey("users.id"))
    notes = db.Column(db.String(1000))


class WorkflowAlert(TimestampedRecordModel):
    __tablename__ = "workflow_alerts"
    __field_aliases__ = {"metadata": "meta"}

    type = db.Column(db.String(100), default="Work Flow Line Item")
    priority = db.Column(db.String(10), default="MEDIUM")
    status = db.Column(db.String(20), default="ACTIVE")
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    step_name = db.Column(db.String(255), nullable=False)
    responsible_role = db.Column(db.String(30), default="OFFICE")
    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime)
    acknowledged = db.Column(db.Boolean, default=False)
    acknowledged_at = db.Column(db.DateTime)
    due_date = db.Column(db.DateTime)
    project_id = db.Column(db.String(64), db.ForeignKey("projects.id"), nullable=False, index=True)
    section_id = db.Column(db.String(64), db.ForeignKey("workflow_sections.id"))
    line_item_id = db.Column(db.String(64), db.ForeignKey("workflow_line_items.id"))
    assigned_to_id = db.Column(db.String(64), db.ForeignKey("users.id"))
    created_by_id = db.Column(db.String(64), db.ForeignKey("users.id"))
    meta = db.Column("metadata", db.JSON)
