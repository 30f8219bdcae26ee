"""
Dependency Planner — orders sheets so parents are imported before children.

Ranks follow the reference chain of the persisted tables; a table without
a rank sits in the middle (``DEFAULT_RANK``).  Sorting is stable, so sheets
of equal rank keep their workbook order.
"""

from __future__ import annotations

DEFAULT_RANK = 3

DEPENDENCY_RANKS = {
    "users": 0,
    "workflow_phases": 0,
    "customers": 1,
    "contacts": 2,
    "projects": 2,
    "project_team_members": 3,
    "workflow_sections": 4,
    "workflow_line_items": 5,
    "project_workflow_trackers": 6,
    "tasks": 6,
    "calendar_events": 6,
    "workflow_alerts": 7,
    "project_messages": 8,
    "notifications": 8,
    "completed_workflow_items": 9,
    "role_assignments": 10,
}


def dependency_rank(table: str) -> int:
    return DEPENDENCY_RANKS.get(table, DEFAULT_RANK)


def plan_order(sheets: list, key=lambda item: item[1]) -> list:
    """Stable sort of ``sheets`` by the rank of each item's table.

    By default items are ``(sheet, table)`` pairs.
    """
    return sorted(sheets, key=lambda item: dependency_rank(key(item)))
