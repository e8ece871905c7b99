"""
auth/models.py -- Domain types for identities, roles and sessions.

Pattern: Data class (pure data container, zero logic). Mirrors orgs/models.py
and audit/models.py -- dataclasses own domain shape; stores and services do
the work.

ROLE_RANK is the one definition of "Owner > Admin > Viewer". The coarse role
check, the deletion rule and the Owner reachability rule all read it; nothing
else hard-codes a rank.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    VIEWER = "viewer"


ROLE_RANK: dict[Role, int] = {
    Role.OWNER: 3,
    Role.ADMIN: 2,
    Role.VIEWER: 1,
}

# bcrypt only reads the first 72 bytes of a password; longer input is refused.
MAX_PASSWORD_BYTES = 72


@dataclass
class Identity:
    """An account that can authenticate.

    role and organization_id are fixed at registration -- there is no
    reassignment operation. password_hash is a bcrypt hash (salt and cost
    factor are embedded in the hash string); the plaintext is never stored.

    id is None before the record is written to the database.
    """

    username: str
    password_hash: str
    role: Role
    organization_id: str
    id: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class SessionToken:
    """A signed, time-bounded session credential plus the claims it carries.

    Never persisted server-side: validity is a function of the signature
    and expires_at only. Logout is the client discarding access_token.
    """

    access_token: str
    subject_id: str
    username: str
    role: Role
    organization_id: str
    issued_at: int  # seconds since epoch
    expires_at: int  # seconds since epoch
