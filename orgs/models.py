"""
orgs/models.py -- Domain dataclass for organizations.

Pattern: Data class (pure data container, zero logic). The hierarchy is two
levels deep: a root organization (parent_id is None) and its direct children.
The depth rule is enforced by OrganizationDirectory.create(), not here.

Layer rule: no imports from api/, auth/, audit/, or tasks/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Organization:
    """A tenant. Created once at setup; read-only thereafter.

    id is None before the record is written to the database.
    """

    name: str
    parent_id: str | None = None  # None = root organization
    id: str | None = None
    created_at: str | None = None
