"""
api/routes/v1/organizations.py -- Organization directory endpoints.

Routes:
  GET  /api/v1/organizations        -- list all organizations (public)
  GET  /api/v1/organizations/{id}   -- one organization with its children (public)
  POST /api/v1/organizations        -- create a root or child organization

Creation policy:
  Root organization (no parent_id): public. This is the bootstrap step --
      registration needs an existing organization, so the first one cannot
      require a session.
  Child organization: the parent must exist (404 before any access check),
      and the caller must be an Owner whose organization is the parent.
      Anything else is OrganizationAccessDenied / InsufficientRole, audited
      by the guard.

The directory itself enforces the two-level depth rule (a parent must be a
root), so the route does not repeat that check.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from api.models import OrganizationCreate, OrganizationResponse
from audit.models import AuditAction
from auth.access import AccessGuard, OperationPolicy
from auth.dependencies import bearer_token, client_context, get_optional_identity
from auth.models import Identity, Role
from core.errors import OrganizationNotFound
from orgs.models import Organization
from orgs.store import OrganizationDirectory

logger = logging.getLogger("tasktracker.api")

CREATE_CHILD_ORGANIZATION = OperationPolicy(min_role=Role.OWNER, resource_type="organization")

router = APIRouter()


@router.get("/organizations", response_model=list[OrganizationResponse])
def list_organizations(request: Request) -> list[OrganizationResponse]:
    """Return every organization with its direct children's ids."""
    directory: OrganizationDirectory = request.app.state.directory
    orgs = directory.list_all()
    children: dict[str, list[str]] = {}
    for org in orgs:
        if org.parent_id is not None:
            children.setdefault(org.parent_id, []).append(org.id)
    return [OrganizationResponse.from_organization(o, children.get(o.id)) for o in orgs]


@router.get("/organizations/{org_id}", response_model=OrganizationResponse)
def get_organization(request: Request, org_id: str) -> OrganizationResponse:
    directory: OrganizationDirectory = request.app.state.directory
    org = directory.find_by_id(org_id)
    if org is None:
        raise OrganizationNotFound(f"organization {org_id!r} does not exist")
    child_ids = [c.id for c in directory.find_children(org.id)]
    return OrganizationResponse.from_organization(org, child_ids)


@router.post("/organizations", response_model=OrganizationResponse, status_code=201)
def create_organization(
    request: Request,
    body: OrganizationCreate,
    identity: Identity | None = Depends(get_optional_identity),
) -> OrganizationResponse:
    """Create an organization. Children require an Owner of the parent."""
    directory: OrganizationDirectory = request.app.state.directory
    context = client_context(request)

    if body.parent_id is not None:
        # Reachability cannot be judged against a parent that does not exist.
        if directory.find_by_id(body.parent_id) is None:
            raise OrganizationNotFound(f"parent organization {body.parent_id!r} does not exist")
        guard: AccessGuard = request.app.state.guard
        # Resolve strictly: a child org is never created anonymously.
        identity = guard.validate_and_authorize(
            bearer_token(request),
            CREATE_CHILD_ORGANIZATION,
            resource_org_id=body.parent_id,
            context=context,
        )

    org = directory.create(Organization(name=body.name, parent_id=body.parent_id))
    request.app.state.recorder.record(
        identity.id if identity is not None else None,
        AuditAction.CREATE,
        "organization",
        org.id,
        f"Created organization: {org.name}",
        context,
    )
    return OrganizationResponse.from_organization(org)
