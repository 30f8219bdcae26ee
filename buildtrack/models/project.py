"""
Project models — projects and the work planned around them.

    projects              one construction job; ``project_number`` is the
                          human-facing key and is unique
    project_team_members  user ↔ project membership
    tasks                 assignable to-dos
    calendar_events       meetings, inspections and deadlines
"""

from buildtrack.models import db
from buildtrack.models.base import RecordModel, TimestampedRecordModel


# ═══════════════════════════════════════════════════════════════
# PROJECTS
# ═══════════════════════════════════════════════════════════════
class Project(TimestampedRecordModel):
    __tablename__ = "projects"

    project_number = db.Column(db.Integer, unique=True, index=True)
    project_name = db.Column(db.String(200), nullable=False)
    project_type = db.Column(db.String(40), nullable=False)
    status = db.Column(db.String(20), default="PENDING")
    archived = db.Column(db.Boolean, default=False)
    progress = db.Column(db.Integer, default=0)
    description = db.Column(db.String(2000))
    priority = db.Column(db.String(10), default="MEDIUM")
    budget = db.Column(db.Numeric(12, 2), nullable=False)
    estimated_cost = db.Column(db.Numeric(12, 2))
    actual_cost = db.Column(db.Numeric(12, 2))
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    notes = db.Column(db.String(1000))
    pm_phone = db.Column(db.String(20))
    pm_email = db.Column(db.String(255))
    customer_id = db.Column(db.String(64), db.ForeignKey("customers.id"), nullable=False, index=True)
    project_manager_id = db.Column(db.String(64), db.ForeignKey("users.id"))
    phase = db.Column(db.String(30))

    def __repr__(self):
        return f"<Project {self.id}: #{self.project_number}>"


class ProjectTeamMember(RecordModel):
    __tablename__ = "project_team_members"
    __table_args__ = (
        db.UniqueConstraint("project_id", "user_id", name="uq_team_member_project_user"),
    )

    project_id = db.Column(db.String(64), db.ForeignKey("projects.id"), nullable=False, index=True)
    user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)
    role = db.Column(db.String(100))


# ═══════════════════════════════════════════════════════════════
# TASKS & CALENDAR
# ═══════════════════════════════════════════════════════════════
class Task(TimestampedRecordModel):
    __tablename__ = "tasks"

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.String(2000))
    due_date = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), default="TO_DO")
    priority = db.Column(db.String(10), default="MEDIUM")
    estimated_hours = db.Column(db.Integer)
    actual_hours = db.Column(db.Integer)
    category = db.Column(db.String(30), default="OTHER")
    tags = db.Column(db.JSON)
    notes = db.Column(db.String(1000))
    completed_at = db.Column(db.DateTime)
    project_id = db.Column(db.String(64), db.ForeignKey("projects.id"), nullable=False, index=True)
    assigned_to_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False)
    created_by_id = db.Column(db.String(64), db.ForeignKey("users.id"))


class CalendarEvent(TimestampedRecordModel):
    __tablename__ = "calendar_events"

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.String(2000))
    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    location = db.Column(db.String(500))
    is_all_day = db.Column(db.Boolean, default=False)
    event_type = db.Column(db.String(20), default="MEETING")
    status = db.Column(db.String(20), default="CONFIRMED")
    is_recurring = db.Column(db.Boolean, default=False)
    recurrence_rule = db.Column(db.String(500))
    parent_event_id = db.Column(db.String(64), db.ForeignKey("calendar_events.id"))
    organizer_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False)
    project_id = db.Column(db.String(64), db.ForeignKey("projects.id"))
