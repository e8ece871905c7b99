"""
api/routes/v1/audit.py -- Audit trail query endpoint.

Routes:
  GET /api/v1/audit-logs   -- newest-first records, capped (Admin+)

Scope: records whose actor belongs to the caller's accessible organization
set -- the caller's own organization, plus its direct children for an Owner.
The cap comes from settings.audit_query_limit (default 1000).

The query itself is recorded as a `read` on "audit_log" AFTER the records
are fetched, so a caller's own query never appears in its own result.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import AuditRecordResponse
from audit.models import AuditAction
from audit.recorder import AuditRecorder
from auth.access import AccessGuard, OperationPolicy
from auth.dependencies import authorize, client_context
from auth.models import Identity, Role
from core.config import get_settings

QUERY_AUDIT = OperationPolicy(min_role=Role.ADMIN, resource_type="audit_log")

router = APIRouter()


@router.get("/audit-logs", response_model=list[AuditRecordResponse])
def list_audit_logs(
    request: Request,
    identity: Identity = Depends(authorize(QUERY_AUDIT)),
) -> list[AuditRecordResponse]:
    guard: AccessGuard = request.app.state.guard
    recorder: AuditRecorder = request.app.state.recorder
    org_ids = guard.evaluator.accessible_organization_ids(identity)
    records = recorder.query(org_ids, limit=get_settings().audit_query_limit)
    recorder.record(
        identity.id,
        AuditAction.READ,
        "audit_log",
        None,
        f"Queried audit log ({len(records)} records)",
        client_context(request),
    )
    return [AuditRecordResponse.from_record(r) for r in records]
