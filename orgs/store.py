"""
orgs/store.py -- Organization Directory: SQLAlchemy Core repository for organizations.

Pattern: Repository + Data Mapper. OrganizationDirectory is the repository;
_row_to_organization is the mapper. Route and service code never touches SQL.

Hierarchy rule: the directory holds a fixed two-level tree (roots and their
direct children). create() enforces it: a parent must exist and must itself
be a root. Without that check a grandchild could be inserted, and the Owner
reachability rule ("exactly one level down") would silently stop covering it.

Layer rule: no imports from api/, auth/, audit/, or tasks/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.database import organizations as _organizations
from core.errors import DuplicateOrganization, OrganizationDepthExceeded, OrganizationNotFound
from orgs.models import Organization

logger = logging.getLogger("tasktracker.orgs")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class OrganizationDirectory:
    """Repository for Organization records and the parent/child relation.

    Usage:
        directory = OrganizationDirectory(engine)
        root = directory.create(Organization(name="Acme"))
        child = directory.create(Organization(name="Acme EU", parent_id=root.id))
        directory.find_children(root.id)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def find_by_id(self, org_id: str) -> Organization | None:
        with self.engine.connect() as conn:
            row = conn.execute(_organizations.select().where(_organizations.c.id == org_id)).fetchone()
        return _row_to_organization(row) if row is not None else None

    def find_by_name(self, name: str) -> Organization | None:
        """Look up an organization by exact name (case-sensitive)."""
        with self.engine.connect() as conn:
            row = conn.execute(_organizations.select().where(_organizations.c.name == name)).fetchone()
        return _row_to_organization(row) if row is not None else None

    def find_children(self, parent_id: str) -> list[Organization]:
        """Return the direct children of parent_id. Order is not significant."""
        with self.engine.connect() as conn:
            rows = conn.execute(_organizations.select().where(_organizations.c.parent_id == parent_id)).fetchall()
        return [_row_to_organization(r) for r in rows]

    def list_all(self) -> list[Organization]:
        """Return every organization ordered by name. Backs the public listing."""
        with self.engine.connect() as conn:
            rows = conn.execute(_organizations.select().order_by(_organizations.c.name)).fetchall()
        return [_row_to_organization(r) for r in rows]

    def create(self, org: Organization) -> Organization:
        """Insert a new organization and return it with id and created_at set.

        Raises:
            DuplicateOrganization:      an organization with this name exists.
            OrganizationNotFound:       parent_id does not resolve.
            OrganizationDepthExceeded:  parent_id names a child organization.
        """
        if org.parent_id is not None:
            parent = self.find_by_id(org.parent_id)
            if parent is None:
                raise OrganizationNotFound(f"parent organization {org.parent_id!r} does not exist")
            if parent.parent_id is not None:
                raise OrganizationDepthExceeded(f"parent organization {parent.id!r} is itself a child")

        if self.find_by_name(org.name) is not None:
            raise DuplicateOrganization(f"organization name {org.name!r} is taken")

        created = Organization(
            id=str(uuid.uuid4()),
            name=org.name,
            parent_id=org.parent_id,
            created_at=_now_iso(),
        )
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _organizations.insert().values(
                        id=created.id,
                        name=created.name,
                        parent_id=created.parent_id,
                        created_at=created.created_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            # A concurrent create won the UNIQUE(name) race after our pre-check.
            raise DuplicateOrganization(f"organization name {org.name!r} is taken") from exc

        logger.info("Organization created: %s (parent=%s)", created.id, created.parent_id)
        return created


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_organization(row) -> Organization:
    return Organization(
        id=row.id,
        name=row.name,
        parent_id=row.parent_id,
        created_at=row.created_at,
    )
