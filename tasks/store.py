"""
tasks/store.py -- SQLAlchemy Core persistence for tasks.

Pattern: Repository + Data Mapper. The store does no authorization -- the
organization filter for listings is an argument computed by the Access
Evaluator, and per-task checks happen in tasks/service.py.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy.engine import Engine

from core.database import tasks as _tasks
from tasks.models import Task, TaskCategory, TaskStatus

# Fields a PATCH may change. organization_id and created_by_id are not here:
# they are what authorization decisions are made on.
_MUTABLE_FIELDS = frozenset({"title", "description", "status", "category", "order", "due_date", "assigned_to_id"})


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_columns(fields: dict) -> dict:
    """Map domain field names onto column names and enum values onto strings."""
    values = {}
    for key, value in fields.items():
        if isinstance(value, (TaskStatus, TaskCategory)):
            value = value.value
        values["sort_order" if key == "order" else key] = value
    return values


class TaskStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create(self, task: Task) -> Task:
        now = _now_iso()
        task_id = str(uuid.uuid4())
        with self.engine.connect() as conn:
            conn.execute(
                _tasks.insert().values(
                    id=task_id,
                    organization_id=task.organization_id,
                    created_by_id=task.created_by_id,
                    created_at=now,
                    updated_at=now,
                    **_to_columns(
                        {
                            "title": task.title,
                            "description": task.description,
                            "status": TaskStatus(task.status),
                            "category": TaskCategory(task.category),
                            "order": task.order,
                            "due_date": task.due_date,
                            "assigned_to_id": task.assigned_to_id,
                        }
                    ),
                )
            )
            conn.commit()
        return self.get(task_id)

    def get(self, task_id: str) -> Task | None:
        with self.engine.connect() as conn:
            row = conn.execute(_tasks.select().where(_tasks.c.id == task_id)).fetchone()
        return _row_to_task(row) if row is not None else None

    def list_for_organizations(self, organization_ids: Iterable[str]) -> list[Task]:
        """Tasks owned by any of organization_ids, by position then newest first."""
        org_ids = list(organization_ids)
        if not org_ids:
            return []
        with self.engine.connect() as conn:
            rows = conn.execute(
                _tasks.select()
                .where(_tasks.c.organization_id.in_(org_ids))
                .order_by(_tasks.c.sort_order.asc(), _tasks.c.created_at.desc())
            ).fetchall()
        return [_row_to_task(r) for r in rows]

    def update(self, task_id: str, **fields) -> Task | None:
        """Apply the given field changes. Unknown or protected fields raise ValueError."""
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)!r}")
        values = _to_columns(fields)
        values["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(_tasks.update().where(_tasks.c.id == task_id).values(**values))
            conn.commit()
        return self.get(task_id)

    def delete(self, task_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.delete().where(_tasks.c.id == task_id))
            conn.commit()
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        title=row.title,
        description=row.description,
        status=TaskStatus(row.status),
        category=TaskCategory(row.category),
        order=row.sort_order,
        due_date=row.due_date,
        organization_id=row.organization_id,
        created_by_id=row.created_by_id,
        assigned_to_id=row.assigned_to_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
