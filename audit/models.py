"""
audit/models.py -- Domain types for the audit trail.

Pattern: Data class (pure data container, zero logic), same as the other
packages' models.py.

Layer rule: no imports from api/, auth/, orgs/, or tasks/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AuditAction(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    LOGIN = "login"
    LOGOUT = "logout"
    ACCESS_DENIED = "access_denied"


@dataclass(frozen=True)
class RequestContext:
    """Client metadata captured from the inbound request for forensics."""

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class AuditRecord:
    """Immutable entry in the append-only audit trail.

    Records are never updated or deleted -- only inserted.

    actor_id is None only for failed logins against a username that does not
    exist; there is no identity to attribute those to.
    details is free text meant for humans (e.g. "Created task: Ship v2"),
    not a structured format.
    """

    action: AuditAction
    resource_type: str  # "task", "user", "auth", "organization", "audit_log"
    actor_id: str | None = None
    resource_id: str | None = None
    details: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    id: int | None = None
    created_at: str | None = None
