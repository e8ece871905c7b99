"""
api/routes/v1/tasks.py -- Task CRUD endpoints.

Routes:
  POST   /api/v1/tasks        -- create (Admin+)
  GET    /api/v1/tasks        -- list tasks in every reachable organization (Viewer+)
  GET    /api/v1/tasks/{id}   -- one task (Viewer+, reachable)
  PATCH  /api/v1/tasks/{id}   -- update (Admin+, reachable)
  DELETE /api/v1/tasks/{id}   -- delete (Owner, or the Admin who created it; reachable)

Every route authenticates with get_current_identity and hands the identity to
TaskService, which owns the role/reachability checks and the audit record.
The route layer only translates between transport models and domain types.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import TaskCreate, TaskResponse, TaskUpdate
from auth.dependencies import client_context, get_current_identity
from auth.models import Identity
from tasks.models import Task
from tasks.service import TaskService

# Fields that may be cleared with an explicit null. The rest are NOT NULL.
_NULLABLE_FIELDS = frozenset({"description", "due_date", "assigned_to_id"})

router = APIRouter()


@router.post("/tasks", response_model=TaskResponse, status_code=201)
def create_task(
    request: Request,
    body: TaskCreate,
    identity: Identity = Depends(get_current_identity),
) -> TaskResponse:
    service: TaskService = request.app.state.task_service
    task = Task(
        title=body.title,
        description=body.description,
        status=body.status,
        category=body.category,
        order=body.order,
        due_date=body.due_date,
        assigned_to_id=body.assigned_to_id,
        organization_id=identity.organization_id,
        created_by_id=identity.id,
    )
    created = service.create(identity, task, context=client_context(request))
    return TaskResponse.from_task(created)


@router.get("/tasks", response_model=list[TaskResponse])
def list_tasks(request: Request, identity: Identity = Depends(get_current_identity)) -> list[TaskResponse]:
    service: TaskService = request.app.state.task_service
    return [TaskResponse.from_task(t) for t in service.list_accessible(identity, context=client_context(request))]


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(request: Request, task_id: str, identity: Identity = Depends(get_current_identity)) -> TaskResponse:
    service: TaskService = request.app.state.task_service
    return TaskResponse.from_task(service.get(identity, task_id, context=client_context(request)))


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    request: Request,
    task_id: str,
    body: TaskUpdate,
    identity: Identity = Depends(get_current_identity),
) -> TaskResponse:
    """Apply only the fields present in the request body."""
    service: TaskService = request.app.state.task_service
    changes = {
        k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None or k in _NULLABLE_FIELDS
    }
    updated = service.update(identity, task_id, changes, context=client_context(request))
    return TaskResponse.from_task(updated)


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(request: Request, task_id: str, identity: Identity = Depends(get_current_identity)) -> Response:
    service: TaskService = request.app.state.task_service
    service.delete(identity, task_id, context=client_context(request))
    return Response(status_code=204)
