"""
API request and response models for the task tracker REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/, orgs/, audit/
and tasks/, which own the internal domain representation. Route handlers map
between the two; the from_* factory methods keep that mapping colocated with
the output model.

Separation of concerns: package models = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from audit.models import AuditRecord
from auth.models import MAX_PASSWORD_BYTES, Identity, Role, SessionToken
from orgs.models import Organization
from tasks.models import Task, TaskCategory, TaskStatus

# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def _password_fits_bcrypt(value: str) -> str:
    """Reject passwords longer than bcrypt's 72-byte input once UTF-8 encoded."""
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return value


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _password_fits_bcrypt(value)


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    max_length=72 bounds characters; the validator bounds UTF-8 bytes, which
    is what bcrypt limits.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=6, max_length=72)
    role: Role = Role.VIEWER
    organization_id: str = Field(min_length=1, max_length=36)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _password_fits_bcrypt(value)


class IdentityResponse(BaseModel):
    """Public view of an identity. The password hash never leaves the server."""

    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    role: Role
    organization_id: str

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityResponse":
        return cls(
            id=identity.id,
            username=identity.username,
            role=identity.role,
            organization_id=identity.organization_id,
        )


class SessionResponse(BaseModel):
    """Response for successful login and registration."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    expires_at: int
    user: IdentityResponse

    @classmethod
    def from_session(cls, session: SessionToken, identity: Identity) -> "SessionResponse":
        return cls(
            access_token=session.access_token,
            expires_in=session.expires_at - session.issued_at,
            expires_at=session.expires_at,
            user=IdentityResponse.from_identity(identity),
        )


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------


class OrganizationCreate(BaseModel):
    """Request body for POST /api/v1/organizations."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    parent_id: Optional[str] = Field(default=None, max_length=36)


class OrganizationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    parent_id: Optional[str]
    child_ids: list[str] = Field(default_factory=list)
    created_at: str

    @classmethod
    def from_organization(cls, org: Organization, child_ids: Optional[list[str]] = None) -> "OrganizationResponse":
        return cls(
            id=org.id,
            name=org.name,
            parent_id=org.parent_id,
            child_ids=child_ids or [],
            created_at=org.created_at or "",
        )


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    """Request body for POST /api/v1/tasks.

    No organization_id field: a task always belongs to its creator's organization.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    status: TaskStatus = TaskStatus.TODO
    category: TaskCategory = TaskCategory.OTHER
    order: int = Field(default=0, ge=0)
    due_date: Optional[str] = Field(default=None, max_length=32)
    assigned_to_id: Optional[str] = Field(default=None, max_length=36)


class TaskUpdate(BaseModel):
    """Request body for PATCH /api/v1/tasks/{id}. Only fields sent are changed."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    status: Optional[TaskStatus] = None
    category: Optional[TaskCategory] = None
    order: Optional[int] = Field(default=None, ge=0)
    due_date: Optional[str] = Field(default=None, max_length=32)
    assigned_to_id: Optional[str] = Field(default=None, max_length=36)


class TaskResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: Optional[str]
    status: TaskStatus
    category: TaskCategory
    order: int
    due_date: Optional[str]
    organization_id: str
    created_by_id: str
    assigned_to_id: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status,
            category=task.category,
            order=task.order,
            due_date=task.due_date,
            organization_id=task.organization_id,
            created_by_id=task.created_by_id,
            assigned_to_id=task.assigned_to_id,
            created_at=task.created_at or "",
            updated_at=task.updated_at or "",
        )


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


class AuditRecordResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    actor_id: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[str]
    details: Optional[str]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: str

    @classmethod
    def from_record(cls, record: AuditRecord) -> "AuditRecordResponse":
        return cls(
            id=record.id,
            actor_id=record.actor_id,
            action=record.action.value,
            resource_type=record.resource_type,
            resource_id=record.resource_id,
            details=record.details,
            ip_address=record.ip_address,
            user_agent=record.user_agent,
            created_at=record.created_at or "",
        )
