"""
tasks/service.py -- Task CRUD wrapped in authorization and auditing.

Every operation follows the same sequence, strictly in order:

  1. role check via the guard (before the task is loaded)
  2. load the task -> ResourceNotFound if absent
  3. reachability (and, for delete, creator-or-owner) via the guard
  4. perform the operation
  5. one audit record for the outcome

A denial at 1 or 3 is audited by the guard and stops the sequence, so each
call produces exactly one audit record. The audit write at 5 is in-line:
if it fails, the request fails.

The policies below are the explicit per-operation declarations.
"""

from __future__ import annotations

import logging

from audit.models import AuditAction, RequestContext
from audit.recorder import AuditRecorder
from auth.access import AccessGuard, OperationPolicy
from auth.models import Identity, Role
from core.errors import ResourceNotFound
from tasks.models import Task
from tasks.store import TaskStore

logger = logging.getLogger("tasktracker.tasks")

RESOURCE_TYPE = "task"

CREATE_TASK = OperationPolicy(min_role=Role.ADMIN, resource_type=RESOURCE_TYPE)
LIST_TASKS = OperationPolicy(min_role=Role.VIEWER, resource_type=RESOURCE_TYPE)
READ_TASK = OperationPolicy(min_role=Role.VIEWER, resource_type=RESOURCE_TYPE)
UPDATE_TASK = OperationPolicy(min_role=Role.ADMIN, resource_type=RESOURCE_TYPE)
DELETE_TASK = OperationPolicy(min_role=Role.ADMIN, creator_or_owner=True, resource_type=RESOURCE_TYPE)


class TaskService:
    def __init__(self, store: TaskStore, guard: AccessGuard, recorder: AuditRecorder) -> None:
        self.store = store
        self.guard = guard
        self.recorder = recorder

    def create(self, identity: Identity, task: Task, context: RequestContext | None = None) -> Task:
        """Create a task in the caller's own organization."""
        self.guard.authorize(identity, CREATE_TASK, context=context)
        task.organization_id = identity.organization_id
        task.created_by_id = identity.id
        created = self.store.create(task)
        self.recorder.record(
            identity.id, AuditAction.CREATE, RESOURCE_TYPE, created.id, f"Created task: {created.title}", context
        )
        return created

    def list_accessible(self, identity: Identity, context: RequestContext | None = None) -> list[Task]:
        """Tasks in every organization the caller can reach."""
        self.guard.authorize(identity, LIST_TASKS, context=context)
        org_ids = self.guard.evaluator.accessible_organization_ids(identity)
        tasks = self.store.list_for_organizations(org_ids)
        self.recorder.record(identity.id, AuditAction.READ, RESOURCE_TYPE, None, "Listed tasks", context)
        return tasks

    def get(self, identity: Identity, task_id: str, context: RequestContext | None = None) -> Task:
        task = self._load_authorized(identity, task_id, READ_TASK, context)
        self.recorder.record(identity.id, AuditAction.READ, RESOURCE_TYPE, task.id, f"Viewed task: {task.title}", context)
        return task

    def update(self, identity: Identity, task_id: str, changes: dict, context: RequestContext | None = None) -> Task:
        task = self._load_authorized(identity, task_id, UPDATE_TASK, context)
        updated = self.store.update(task.id, **changes) if changes else task
        self.recorder.record(
            identity.id, AuditAction.UPDATE, RESOURCE_TYPE, task.id, f"Updated task: {updated.title}", context
        )
        return updated

    def delete(self, identity: Identity, task_id: str, context: RequestContext | None = None) -> None:
        task = self._load_authorized(identity, task_id, DELETE_TASK, context)
        self.store.delete(task.id)
        self.recorder.record(identity.id, AuditAction.DELETE, RESOURCE_TYPE, task.id, f"Deleted task: {task.title}", context)
        logger.info("Task %s deleted by %s", task.id, identity.id)

    def _load_authorized(
        self, identity: Identity, task_id: str, policy: OperationPolicy, context: RequestContext | None
    ) -> Task:
        self.guard.authorize(identity, policy, resource_id=task_id, context=context)
        task = self.store.get(task_id)
        if task is None:
            raise ResourceNotFound(f"task {task_id!r} does not exist")
        self.guard.authorize(
            identity,
            policy,
            resource_id=task.id,
            resource_org_id=task.organization_id,
            resource_creator_id=task.created_by_id,
            context=context,
        )
        return task
