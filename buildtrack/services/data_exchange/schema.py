"""
Declarative description of every table the data-exchange engine knows.

Each table is an ordered tuple of ``FieldDescription`` entries.  The order
is the column order used by exports and templates, and the table order is
the order the sheet detector tries tables in.

Only storage-level facts live here (storage kind, required/unique,
max length, enum domain, references).  The semantic type, transformer and
validator chain of each field are derived from these facts when the
registry is built (see ``registry.build_registry``).

Storage kinds:
    String, Int, Decimal, Boolean, DateTime, Json, String[],
    Enum (single value of ``enum``), Enum[] (subset of ``enum``)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from buildtrack.services.data_exchange.types import utc_now

NO_DEFAULT = object()
# Default resolved to the first value of the field's enum domain
FIRST_ENUM = object()


@dataclass(frozen=True)
class FieldDescription:
    name: str
    storage: str
    required: bool = False
    unique: bool = False
    max_length: int | None = None
    enum: tuple[str, ...] | None = None
    references: str | None = None
    # Dangling references to ``references`` are satisfied with a stub parent
    ensure: bool = False
    default: Any = NO_DEFAULT
    primary_key: bool = False
    auto_managed: bool = False


def f(name, storage="String", **kwargs) -> FieldDescription:
    return FieldDescription(name, storage, **kwargs)


def fk(name, table, *, required=False, ensure=False) -> FieldDescription:
    return FieldDescription(name, "String", required=required, references=table, ensure=ensure)


def enum(name, domain, *, many=False, **kwargs) -> FieldDescription:
    return FieldDescription(name, "Enum[]" if many else "Enum", enum=domain, **kwargs)


ID = FieldDescription("id", "String", primary_key=True)
CREATED_AT = FieldDescription("createdAt", "DateTime", auto_managed=True)
UPDATED_AT = FieldDescription("updatedAt", "DateTime", auto_managed=True)


# ── Default value factories ─────────────────────────────────────────────
# Called with the record being created so defaults can depend on it.

def today(_values=None) -> datetime:
    return utc_now().replace(hour=0, minute=0, second=0, microsecond=0)


def now(_values=None) -> datetime:
    return utc_now()


def days_from_today(days):
    def _default(values=None):
        return today(values) + timedelta(days=days)
    return _default


def seed_project_name(values) -> str:
    return f"Seed Project {values.get('projectNumber')}"


# ═══════════════════════════════════════════════════════════════
# ENUM DOMAINS (first value is the default where one applies)
# ═══════════════════════════════════════════════════════════════
USER_ROLES = (
    "WORKER", "ADMIN", "MANAGER", "PROJECT_MANAGER", "FOREMAN",
    "SUBCONTRACTOR", "CLIENT", "OFFICE",
)
PERMISSIONS = (
    "CREATE_PROJECTS", "EDIT_PROJECTS", "DELETE_PROJECTS", "MANAGE_USERS",
    "VIEW_REPORTS", "FINANCIAL_ACCESS", "APPROVE_WORKFLOWS",
)
THEMES = ("LIGHT", "DARK", "AUTO")
CONTACT_PREFERENCE = ("PRIMARY", "SECONDARY")
PROJECT_TYPES = (
    "ROOF_REPLACEMENT", "KITCHEN_REMODEL", "BATHROOM_RENOVATION",
    "SIDING_INSTALLATION", "WINDOW_REPLACEMENT", "FLOORING",
    "PAINTING", "ELECTRICAL_WORK", "PLUMBING", "HVAC", "DECK_CONSTRUCTION",
    "LANDSCAPING", "OTHER",
)
PROJECT_STATUSES = ("PENDING", "IN_PROGRESS", "COMPLETED", "ON_HOLD")
PRIORITIES = ("LOW", "MEDIUM", "HIGH")
MESSAGE_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")
PROJECT_PHASES = (
    "LEAD", "PROSPECT", "APPROVED", "EXECUTION", "SECOND_SUPPLEMENT",
    "COMPLETION",
)
RESPONSIBLE_ROLES = ("OFFICE", "ADMINISTRATION", "PROJECT_MANAGER", "FIELD_DIRECTOR", "ROOF_SUPERVISOR")
ALERT_STATUSES = ("ACTIVE", "ACKNOWLEDGED", "DISMISSED", "COMPLETED")
MESSAGE_TYPES = (
    "WORKFLOW_UPDATE", "PHASE_COMPLETION", "LINE_ITEM_COMPLETION",
    "USER_MESSAGE", "SYSTEM_NOTIFICATION", "ALERT_DISCUSSION",
    "PROJECT_MILESTONE",
)
TASK_STATUSES = ("TO_DO", "IN_PROGRESS", "DONE")
TASK_CATEGORIES = (
    "OTHER", "PLANNING", "DESIGN", "CONSTRUCTION", "INSPECTION",
    "DOCUMENTATION", "COMMUNICATION",
)
NOTIFICATION_TYPES = (
    "TASK_ASSIGNED", "TASK_COMPLETED", "PROJECT_UPDATE", "MESSAGE_RECEIVED",
    "DOCUMENT_UPLOADED", "WORKFLOW_ALERT", "SYSTEM_ANNOUNCEMENT",
)
EVENT_TYPES = ("MEETING", "INSPECTION", "INSTALLATION", "DEADLINE", "REMINDER", "OTHER")
EVENT_STATUSES = ("CONFIRMED", "TENTATIVE", "CANCELLED")
ROLE_TYPES = ("PROJECT_MANAGER", "FIELD_DIRECTOR", "OFFICE_STAFF", "ADMINISTRATION")
DOCUMENT_TYPES = (
    "OTHER", "BLUEPRINT", "PERMIT", "INVOICE", "PHOTO", "CONTRACT",
    "REPORT", "SPECIFICATION", "CORRESPONDENCE",
)
CONVERSATION_ROLES = ("MEMBER", "ADMIN", "OWNER")
ATTENDEE_STATUSES = ("REQUIRED", "OPTIONAL", "ORGANIZER")
RESPONSE_STATUSES = ("NO_RESPONSE", "ACCEPTED", "DECLINED", "TENTATIVE")
WORKFLOW_STATUSES = ("NOT_STARTED", "IN_PROGRESS", "COMPLETED", "ON_HOLD")
STEP_STATES = ("PENDING", "IN_PROGRESS", "COMPLETED", "SKIPPED")
DEPENDENCY_TYPES = ("FINISH_TO_START", "START_TO_START", "FINISH_TO_FINISH", "START_TO_FINISH")


# ═══════════════════════════════════════════════════════════════
# TABLES
# ═══════════════════════════════════════════════════════════════
SCHEMA: dict[str, tuple[FieldDescription, ...]] = {}

SCHEMA["users"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("firstName", required=True, max_length=50),
    f("lastName", required=True, max_length=50, default="User"),
    f("email", required=True, unique=True, max_length=255),
    f("phone", max_length=20),
    f("position", max_length=100),
    f("department", max_length=100),
    f("bio", max_length=500),
    enum("role", USER_ROLES, default=FIRST_ENUM),
    enum("permissions", PERMISSIONS, many=True),
    f("isActive", "Boolean", default=True),
    f("isVerified", "Boolean", default=False),
    f("language", max_length=5, default="en"),
    f("timezone", max_length=50, default="UTC"),
    f("skills", "String[]"),
    f("experience", "Int"),
    f("notificationPreferences", "Json"),
    enum("theme", THEMES, default=FIRST_ENUM),
)

SCHEMA["customers"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("primaryName", required=True, max_length=100),
    f("primaryEmail", required=True, unique=True, max_length=255),
    f("primaryPhone", required=True, max_length=20, default="555-555-0100"),
    f("secondaryName", max_length=100),
    f("secondaryEmail", max_length=255),
    f("secondaryPhone", max_length=20),
    enum("primaryContact", CONTACT_PREFERENCE, default=FIRST_ENUM),
    f("address", required=True, max_length=500, default="123 Seed St, Colorado Springs, CO"),
    f("notes", max_length=2000),
)

SCHEMA["contacts"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("name", required=True, max_length=100),
    f("phone", max_length=20),
    f("email", max_length=255),
    f("role", max_length=50),
    f("isPrimary", "Boolean", default=False),
    f("isActive", "Boolean", default=True),
    f("notes", max_length=500),
    fk("customerId", "customers", required=True),
)

SCHEMA["projects"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("projectNumber", "Int", unique=True),
    f("projectName", required=True, max_length=200, default=seed_project_name),
    enum("projectType", PROJECT_TYPES, required=True, default=FIRST_ENUM),
    enum("status", PROJECT_STATUSES, default=FIRST_ENUM),
    f("archived", "Boolean", default=False),
    f("progress", "Int", default=0),
    f("description", max_length=2000),
    enum("priority", PRIORITIES, default="MEDIUM"),
    f("budget", "Decimal", required=True, default=0),
    f("estimatedCost", "Decimal"),
    f("actualCost", "Decimal"),
    f("startDate", "DateTime", required=True, default=today),
    f("endDate", "DateTime", required=True, default=days_from_today(7)),
    f("notes", max_length=1000),
    f("pmPhone", max_length=20),
    f("pmEmail", max_length=255),
    fk("customerId", "customers", required=True, ensure=True),
    fk("projectManagerId", "users"),
    enum("phase", PROJECT_PHASES),
)

SCHEMA["project_team_members"] = (
    ID, CREATED_AT,
    fk("projectId", "projects", required=True),
    fk("userId", "users", required=True),
    f("role", max_length=100),
)

SCHEMA["workflow_phases"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("phaseName", required=True, max_length=100),
    enum("phaseType", PROJECT_PHASES, required=True, unique=True),
    f("displayOrder", "Int", default=0),
    f("description", max_length=500),
    f("isActive", "Boolean", default=True),
)

SCHEMA["workflow_sections"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("sectionNumber", required=True, max_length=10),
    f("sectionName", required=True, max_length=200),
    f("displayName", max_length=255),
    f("displayOrder", "Int", default=0),
    f("description", max_length=500),
    f("isActive", "Boolean", default=True),
    fk("phaseId", "workflow_phases", required=True),
)

SCHEMA["workflow_line_items"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("itemLetter", required=True, max_length=10),
    f("itemName", required=True, max_length=500),
    enum("responsibleRole", RESPONSIBLE_ROLES, required=True, default=FIRST_ENUM),
    f("displayOrder", "Int", default=0),
    f("description", max_length=1000),
    f("isActive", "Boolean", default=True),
    f("estimatedMinutes", "Int", default=30),
    f("alertDays", "Int", default=1),
    fk("sectionId", "workflow_sections", required=True),
)

SCHEMA["project_workflow_trackers"] = (
    ID, CREATED_AT, UPDATED_AT,
    fk("projectId", "projects", required=True, ensure=True),
    fk("currentPhaseId", "workflow_phases"),
    fk("currentSectionId", "workflow_sections"),
    fk("currentLineItemId", "workflow_line_items"),
    f("lastCompletedItemId", max_length=64),
    f("phaseStartedAt", "DateTime"),
    f("sectionStartedAt", "DateTime"),
    f("lineItemStartedAt", "DateTime"),
)

SCHEMA["completed_workflow_items"] = (
    ID, CREATED_AT,
    fk("trackerId", "project_workflow_trackers", required=True, ensure=True),
    fk("phaseId", "workflow_phases", required=True),
    fk("sectionId", "workflow_sections", required=True),
    fk("lineItemId", "workflow_line_items", required=True),
    f("completedAt", "DateTime", required=True, default=now),
    fk("completedById", "users"),
    f("notes", max_length=1000),
)

SCHEMA["workflow_alerts"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("type", max_length=100, default="Work Flow Line Item"),
    enum("priority", PRIORITIES, default="MEDIUM"),
    enum("status", ALERT_STATUSES, default=FIRST_ENUM),
    f("title", required=True, max_length=255),
    f("message", required=True),
    f("stepName", required=True, max_length=255),
    enum("responsibleRole", RESPONSIBLE_ROLES, default=FIRST_ENUM),
    f("isRead", "Boolean", default=False),
    f("readAt", "DateTime"),
    f("acknowledged", "Boolean", default=False),
    f("acknowledgedAt", "DateTime"),
    f("dueDate", "DateTime"),
    fk("projectId", "projects", required=True, ensure=True),
    fk("sectionId", "workflow_sections"),
    fk("lineItemId", "workflow_line_items"),
    fk("assignedToId", "users"),
    fk("createdById", "users"),
    f("metadata", "Json"),
)

SCHEMA["project_messages"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("content", required=True),
    f("subject", required=True, max_length=255),
    enum("messageType", MESSAGE_TYPES, default=FIRST_ENUM),
    enum("priority", MESSAGE_PRIORITIES, default="MEDIUM"),
    fk("authorId", "users"),
    f("authorName", required=True, max_length=100),
    f("authorRole", max_length=50),
    fk("projectId", "projects", required=True, ensure=True),
    f("projectNumber", "Int"),
    f("stepName", max_length=255),
    enum("phase", PROJECT_PHASES),
    f("section", max_length=255),
    f("lineItem", max_length=255),
    f("isSystemGenerated", "Boolean", default=False),
    f("isWorkflowMessage", "Boolean", default=False),
    fk("parentMessageId", "project_messages"),
    f("readBy", "String[]"),
    f("readCount", "Int", default=0),
    f("metadata", "Json"),
)

SCHEMA["tasks"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("title", required=True, max_length=200),
    f("description", max_length=2000),
    f("dueDate", "DateTime", required=True),
    enum("status", TASK_STATUSES, default=FIRST_ENUM),
    enum("priority", PRIORITIES, default="MEDIUM"),
    f("estimatedHours", "Int"),
    f("actualHours", "Int"),
    enum("category", TASK_CATEGORIES, default=FIRST_ENUM),
    f("tags", "String[]"),
    f("notes", max_length=1000),
    f("completedAt", "DateTime"),
    fk("projectId", "projects", required=True),
    fk("assignedToId", "users", required=True),
    fk("createdById", "users"),
)

SCHEMA["notifications"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("title", required=True, max_length=200),
    f("message", required=True, max_length=1000),
    enum("type", NOTIFICATION_TYPES, required=True),
    f("isRead", "Boolean", default=False),
    f("readAt", "DateTime"),
    f("actionUrl", max_length=500),
    f("actionData", "Json"),
    fk("recipientId", "users", required=True),
)

SCHEMA["calendar_events"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("title", required=True, max_length=200),
    f("description", max_length=2000),
    f("startTime", "DateTime", required=True),
    f("endTime", "DateTime", required=True),
    f("location", max_length=500),
    f("isAllDay", "Boolean", default=False),
    enum("eventType", EVENT_TYPES, default=FIRST_ENUM),
    enum("status", EVENT_STATUSES, default=FIRST_ENUM),
    f("isRecurring", "Boolean", default=False),
    f("recurrenceRule", max_length=500),
    fk("parentEventId", "calendar_events"),
    fk("organizerId", "users", required=True),
    fk("projectId", "projects"),
)

SCHEMA["role_assignments"] = (
    ID, CREATED_AT, UPDATED_AT,
    enum("roleType", ROLE_TYPES, required=True, unique=True),
    fk("userId", "users", required=True, ensure=True),
    f("assignedAt", "DateTime", default=now),
    fk("assignedById", "users", ensure=True),
    f("isActive", "Boolean", default=True),
)

# ── Tables described for templates/detection but not backed by a model ──

SCHEMA["documents"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("fileName", required=True, max_length=255),
    f("originalName", required=True, max_length=255),
    f("fileUrl", required=True, max_length=1000),
    f("mimeType", required=True, max_length=100),
    f("fileSize", "Int", required=True),
    f("description", max_length=1000),
    enum("fileType", DOCUMENT_TYPES, default=FIRST_ENUM),
    f("tags", "String[]"),
    f("version", "Int", default=1),
    f("isActive", "Boolean", default=True),
    f("downloadCount", "Int", default=0),
    f("isPublic", "Boolean", default=False),
    fk("projectId", "projects", required=True),
    fk("uploadedById", "users", required=True),
)

SCHEMA["document_downloads"] = (
    ID, CREATED_AT,
    fk("documentId", "documents", required=True),
    fk("userId", "users", required=True),
    f("downloadedAt", "DateTime", default=now),
)

SCHEMA["conversations"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("title", max_length=200),
    f("description", max_length=1000),
    f("isGroup", "Boolean", default=False),
    f("isActive", "Boolean", default=True),
    fk("projectId", "projects"),
)

SCHEMA["conversation_participants"] = (
    ID,
    fk("conversationId", "conversations", required=True),
    fk("userId", "users", required=True),
    f("joinedAt", "DateTime", default=now),
    f("leftAt", "DateTime"),
    enum("role", CONVERSATION_ROLES, default=FIRST_ENUM),
)

SCHEMA["messages"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("text", required=True, max_length=2000),
    f("isEdited", "Boolean", default=False),
    f("isDeleted", "Boolean", default=False),
    fk("conversationId", "conversations", required=True),
    fk("senderId", "users", required=True),
    fk("replyToId", "messages"),
)

SCHEMA["message_reads"] = (
    ID,
    fk("messageId", "messages", required=True),
    fk("userId", "users", required=True),
    f("readAt", "DateTime", default=now),
)

SCHEMA["calendar_event_attendees"] = (
    ID,
    fk("eventId", "calendar_events", required=True),
    fk("userId", "users", required=True),
    enum("status", ATTENDEE_STATUSES, default=FIRST_ENUM),
    enum("response", RESPONSE_STATUSES, default=FIRST_ENUM),
)

SCHEMA["project_workflows"] = (
    ID, CREATED_AT, UPDATED_AT,
    fk("projectId", "projects", required=True),
    enum("status", WORKFLOW_STATUSES, default=FIRST_ENUM),
    f("currentStepIndex", "Int", default=0),
    f("overallProgress", "Int", default=0),
    f("workflowStartDate", "DateTime"),
    f("workflowEndDate", "DateTime"),
)

SCHEMA["workflow_steps"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("stepId", required=True, max_length=50),
    f("stepName", required=True, max_length=255),
    f("description", required=True, max_length=2000),
    enum("phase", PROJECT_PHASES, required=True),
    enum("state", STEP_STATES, default=FIRST_ENUM),
    f("isCompleted", "Boolean", default=False),
    f("completedAt", "DateTime"),
    f("estimatedDuration", "Int", required=True),
    f("stepOrder", "Int", required=True),
    fk("workflowId", "project_workflows", required=True),
    fk("assignedToId", "users"),
)

SCHEMA["workflow_subtasks"] = (
    ID, CREATED_AT, UPDATED_AT,
    f("subTaskId", required=True, max_length=50),
    f("subTaskName", required=True, max_length=255),
    f("isCompleted", "Boolean", default=False),
    f("completedAt", "DateTime"),
    fk("stepId", "workflow_steps", required=True),
)

SCHEMA["task_dependencies"] = (
    ID, CREATED_AT,
    fk("parentTaskId", "tasks", required=True),
    fk("dependentTaskId", "tasks", required=True),
    enum("dependencyType", DEPENDENCY_TYPES, default=FIRST_ENUM),
)

SCHEMA["project_phase_overrides"] = (
    ID, CREATED_AT, UPDATED_AT,
    fk("projectId", "projects", required=True),
    enum("fromPhase", PROJECT_PHASES),
    enum("toPhase", PROJECT_PHASES, required=True),
    f("reason", max_length=500),
    fk("overriddenById", "users"),
    f("isActive", "Boolean", default=True),
)

SCHEMA["suppressed_workflow_alerts"] = (
    ID, CREATED_AT,
    fk("overrideId", "project_phase_overrides", required=True),
    f("originalAlertId", max_length=64),
    fk("lineItemId", "workflow_line_items"),
    fk("sectionId", "workflow_sections"),
    enum("phase", PROJECT_PHASES, required=True),
    f("reason", max_length=500),
)
