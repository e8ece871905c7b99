"""
audit/recorder.py -- Append-only audit trail.

AuditRecorder is the interface every caller depends on. SqlAuditRecorder is
the only implementation: it writes synchronously, in-line with the request,
against the shared database.

Failure policy (fail-closed): a storage error during record() is logged and
re-raised as AuditWriteError. The enclosing request fails with it -- there
is no partial-success state where an operation happened but went unrecorded.
No retries. Because callers only see the AuditRecorder protocol, an
at-least-once asynchronous strategy can replace SqlAuditRecorder without
touching them.

Query contract: newest first, capped at settings.audit_query_limit unless
the caller passes its own limit, restricted to records
whose actor belongs to one of the given organizations. Computing that
organization set is the Access Evaluator's job; this module only filters.

Layer rule: no imports from api/, auth/, orgs/, or tasks/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from audit.models import AuditAction, AuditRecord, RequestContext
from core.config import get_settings
from core.database import audit_logs as _audit_logs
from core.database import users as _users
from core.errors import AuditWriteError

logger = logging.getLogger("tasktracker.audit")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditRecorder(Protocol):
    def record(
        self,
        actor_id: str | None,
        action: AuditAction,
        resource_type: str,
        resource_id: str | None = None,
        details: str | None = None,
        context: RequestContext | None = None,
    ) -> None: ...

    def query(self, organization_ids: Iterable[str], limit: int | None = None) -> list[AuditRecord]: ...


class SqlAuditRecorder:
    """SQLAlchemy Core implementation of AuditRecorder.

    Usage:
        recorder = SqlAuditRecorder(engine)
        recorder.record(user.id, AuditAction.LOGIN, "auth", user.id, "User logged in")
        recorder.query({user.organization_id})
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def record(
        self,
        actor_id: str | None,
        action: AuditAction,
        resource_type: str,
        resource_id: str | None = None,
        details: str | None = None,
        context: RequestContext | None = None,
    ) -> None:
        """Append one record. Raises AuditWriteError if the write fails."""
        context = context or RequestContext()
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _audit_logs.insert().values(
                        actor_id=actor_id,
                        action=AuditAction(action).value,
                        resource_type=resource_type,
                        resource_id=resource_id,
                        details=details,
                        ip_address=context.ip_address,
                        user_agent=context.user_agent,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
        except SQLAlchemyError as exc:
            logger.exception(
                "Audit write failed (actor=%s action=%s resource=%s/%s)",
                actor_id,
                action,
                resource_type,
                resource_id,
            )
            raise AuditWriteError(f"audit write failed: {exc.__class__.__name__}") from exc

    def query(self, organization_ids: Iterable[str], limit: int | None = None) -> list[AuditRecord]:
        """Return the newest records whose actor belongs to organization_ids.

        limit defaults to settings.audit_query_limit.

        Records with no actor (unknown-username login attempts) and records
        whose actor has since been deleted match no organization and are
        never returned here.
        """
        org_ids = list(organization_ids)
        if not org_ids:
            return []
        if limit is None:
            limit = get_settings().audit_query_limit
        stmt = (
            select(_audit_logs)
            .join(_users, _users.c.id == _audit_logs.c.actor_id)
            .where(_users.c.organization_id.in_(org_ids))
            .order_by(_audit_logs.c.created_at.desc(), _audit_logs.c.id.desc())
            .limit(limit)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_record(r) for r in rows]


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_record(row) -> AuditRecord:
    return AuditRecord(
        id=row.id,
        actor_id=row.actor_id,
        action=AuditAction(row.action),
        resource_type=row.resource_type,
        resource_id=row.resource_id,
        details=row.details,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        created_at=row.created_at,
    )
