"""
auth/store.py -- Credential Store: SQLAlchemy Core persistence for identities.

Pattern: Repository + Data Mapper (same as orgs/store.py).
CredentialStore is the repository; _row_to_identity is the mapper.
Service and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Username uniqueness is case-sensitive exact match, enforced twice: a
  lookup before insert gives the normal-path DuplicateUsername, and the
  UNIQUE(username) constraint catches the race where two registrations pass
  the lookup concurrently. Either way no second record is persisted.

  Only password hashes are stored. The store never sees a plaintext password.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Identity, Role
from core.database import users as _users
from core.errors import DuplicateUsername

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for Identity records.

    Usage:
        store = CredentialStore(engine)
        store.create(Identity(username="alice", password_hash=hash_password("s3cret!"),
                              role=Role.ADMIN, organization_id=org.id))
        identity = store.find_by_username("alice")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def find_by_username(self, username: str) -> Identity | None:
        """Look up an identity by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def find_by_id(self, identity_id: str) -> Identity | None:
        """Look up an identity by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == identity_id)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def create(self, identity: Identity) -> Identity:
        """Insert a new identity and return it with id and created_at assigned.

        Does not check that organization_id resolves -- that belongs to the
        caller (SessionIssuer.register_identity), which owns the
        OrganizationDirectory.

        Raises DuplicateUsername if the username is already taken.
        """
        if self.find_by_username(identity.username) is not None:
            raise DuplicateUsername(f"username {identity.username!r} is taken")

        created = Identity(
            id=str(uuid.uuid4()),
            username=identity.username,
            password_hash=identity.password_hash,
            role=Role(identity.role),
            organization_id=identity.organization_id,
            created_at=_now_iso(),
        )
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(
                        id=created.id,
                        username=created.username,
                        password_hash=created.password_hash,
                        role=created.role.value,
                        organization_id=created.organization_id,
                        created_at=created.created_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateUsername(f"username {identity.username!r} is taken") from exc
        return created


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_identity(row) -> Identity:
    return Identity(
        id=row.id,
        username=row.username,
        password_hash=row.password_hash,
        role=Role(row.role),
        organization_id=row.organization_id,
        created_at=row.created_at,
    )
