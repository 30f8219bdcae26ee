"""
Communication models — project message threads and user notifications.
"""

from buildtrack.models import db
from buildtrack.models.base import TimestampedRecordModel


class ProjectMessage(TimestampedRecordModel):
    __tablename__ = "project_messages"
    __field_aliases__ = {"metadata": "meta"}

    content = db.Column(db.Text, nullable=False)
    subject = db.Column(db.String(255), nullable=False)
    message_type = db.Column(db.String(30), default="WORKFLOW_UPDATE")
    priority = db.Column(db.String(10), default="MEDIUM")
    author_id = db.Column(db.String(64), db.ForeignKey("users.id"))
    author_name = db.Column(db.String(100), nullable=False)
    author_role = db.Column(db.String(50))
    project_id = db.Column(db.String(64), db.ForeignKey("projects.id"), nullable=False, index=True)
    project_number = db.Column(db.Integer)
    step_name = db.Column(db.String(255))
    phase = db.Column(db.String(30))
    section = db.Column(db.String(255))
    line_item = db.Column(db.String(255))
    is_system_generated = db.Column(db.Boolean, default=False)
    is_workflow_message = db.Column(db.Boolean, default=False)
    parent_message_id = db.Column(db.String(64), db.ForeignKey("project_messages.id"))
    read_by = db.Column(db.JSON)
    read_count = db.Column(db.Integer, default=0)
    meta = db.Column("metadata", db.JSON)


class Notification(TimestampedRecordModel):
    __tablename__ = "notifications"

    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.String(1000), nullable=False)
    type = db.Column(db.String(30), nullable=False)
    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime)
    action_url = db.Column(db.String(500))
    action_data = db.Column(db.JSON)
    recipient_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)
