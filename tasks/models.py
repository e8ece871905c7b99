"""
tasks/models.py -- Domain dataclasses for tasks.

Pattern: Data class (pure data container, zero logic). The authorization core
only ever reads organization_id and created_by_id; every other field is
business content it never inspects.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TaskCategory(str, Enum):
    WORK = "work"
    PERSONAL = "personal"
    URGENT = "urgent"
    OTHER = "other"


@dataclass
class Task:
    """A unit of work owned by one organization.

    organization_id and created_by_id are set by the service from the
    creating identity, never from request input.

    id is None before the record is written to the database.
    """

    title: str
    organization_id: str
    created_by_id: str
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    category: TaskCategory = TaskCategory.OTHER
    order: int = 0  # drag-and-drop position; lower sorts first
    due_date: str | None = None  # ISO 8601
    assigned_to_id: str | None = None
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
