"""Unit tests for the SQLAlchemy Core repositories.

Covers:
- CredentialStore: lookups, case-sensitive usernames, duplicate rejection
  with no second record persisted
- OrganizationDirectory: two-level tree, depth limit, missing parent,
  duplicate names, children lookup
- TaskStore: listing order, partial update, unknown fields refused
"""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from auth.models import Identity, Role
from auth.store import CredentialStore
from auth.tokens import hash_password
from core.database import users
from core.errors import DuplicateOrganization, DuplicateUsername, OrganizationDepthExceeded, OrganizationNotFound
from orgs.models import Organization
from orgs.store import OrganizationDirectory
from tasks.models import Task, TaskStatus
from tasks.store import TaskStore


def _identity(username: str, org_id: str = "org-1", role: Role = Role.VIEWER) -> Identity:
    return Identity(username=username, password_hash=hash_password("pw-123456"), role=role, organization_id=org_id)


# ---------------------------------------------------------------------------
# CredentialStore
# ---------------------------------------------------------------------------


class TestCredentialStore:
    def test_create_assigns_id_and_timestamp(self, engine):
        store = CredentialStore(engine)
        created = store.create(_identity("alice", role=Role.ADMIN))
        assert created.id
        assert created.created_at
        assert created.role is Role.ADMIN

    def test_find_by_username_and_id(self, engine):
        store = CredentialStore(engine)
        created = store.create(_identity("alice"))
        assert store.find_by_username("alice").id == created.id
        assert store.find_by_id(created.id).username == "alice"

    def test_find_missing_returns_none(self, engine):
        store = CredentialStore(engine)
        assert store.find_by_username("ghost") is None
        assert store.find_by_id("no-such-id") is None

    def test_username_lookup_is_case_sensitive(self, engine):
        store = CredentialStore(engine)
        store.create(_identity("alice"))
        assert store.find_by_username("Alice") is None

    def test_duplicate_username_rejected_without_second_record(self, engine):
        """A second registration under the same username persists nothing."""
        store = CredentialStore(engine)
        store.create(_identity("alice", org_id="org-1"))
        with pytest.raises(DuplicateUsername):
            store.create(_identity("alice", org_id="org-2"))

        with engine.connect() as conn:
            count = conn.execute(select(func.count()).select_from(users).where(users.c.username == "alice")).scalar()
        assert count == 1
        assert store.find_by_username("alice").organization_id == "org-1"


# ---------------------------------------------------------------------------
# OrganizationDirectory
# ---------------------------------------------------------------------------


class TestOrganizationDirectory:
    def test_create_root_and_child(self, engine):
        directory = OrganizationDirectory(engine)
        root = directory.create(Organization(name="Acme"))
        child = directory.create(Organization(name="Acme EU", parent_id=root.id))
        assert root.parent_id is None
        assert child.parent_id == root.id
        assert [c.id for c in directory.find_children(root.id)] == [child.id]

    def test_grandchild_is_rejected(self, engine):
        """The hierarchy is at most two levels deep."""
        directory = OrganizationDirectory(engine)
        root = directory.create(Organization(name="Acme"))
        child = directory.create(Organization(name="Acme EU", parent_id=root.id))
        with pytest.raises(OrganizationDepthExceeded):
            directory.create(Organization(name="Acme EU West", parent_id=child.id))
        assert directory.find_by_name("Acme EU West") is None

    def test_missing_parent_is_rejected(self, engine):
        directory = OrganizationDirectory(engine)
        with pytest.raises(OrganizationNotFound):
            directory.create(Organization(name="Orphan", parent_id="no-such-org"))

    def test_duplicate_name_is_rejected(self, engine):
        directory = OrganizationDirectory(engine)
        directory.create(Organization(name="Acme"))
        with pytest.raises(DuplicateOrganization):
            directory.create(Organization(name="Acme"))

    def test_list_all_is_ordered_by_name(self, engine):
        directory = OrganizationDirectory(engine)
        for name in ("Zeta", "Alpha", "Mid"):
            directory.create(Organization(name=name))
        assert [o.name for o in directory.list_all()] == ["Alpha", "Mid", "Zeta"]

    def test_find_children_of_leaf_is_empty(self, engine):
        directory = OrganizationDirectory(engine)
        root = directory.create(Organization(name="Acme"))
        assert directory.find_children(root.id) == []


# ---------------------------------------------------------------------------
# TaskStore
# ---------------------------------------------------------------------------


class TestTaskStore:
    def test_list_filters_by_organization_and_sorts_by_order(self, engine):
        store = TaskStore(engine)
        second = store.create(Task(title="second", organization_id="org-1", created_by_id="u1", order=2))
        first = store.create(Task(title="first", organization_id="org-1", created_by_id="u1", order=1))
        store.create(Task(title="elsewhere", organization_id="org-2", created_by_id="u2"))

        listed = store.list_for_organizations({"org-1"})
        assert [t.id for t in listed] == [first.id, second.id]

    def test_list_with_no_organizations_is_empty(self, engine):
        store = TaskStore(engine)
        store.create(Task(title="t", organization_id="org-1", created_by_id="u1"))
        assert store.list_for_organizations(set()) == []

    def test_update_changes_only_given_fields(self, engine):
        store = TaskStore(engine)
        task = store.create(Task(title="draft", organization_id="org-1", created_by_id="u1", description="keep"))
        updated = store.update(task.id, status=TaskStatus.DONE, order=5)
        assert updated.status is TaskStatus.DONE
        assert updated.order == 5
        assert updated.description == "keep"
        assert updated.title == "draft"

    def test_update_refuses_ownership_fields(self, engine):
        store = TaskStore(engine)
        task = store.create(Task(title="t", organization_id="org-1", created_by_id="u1"))
        with pytest.raises(ValueError):
            store.update(task.id, organization_id="org-2")

    def test_delete_removes_task(self, engine):
        store = TaskStore(engine)
        task = store.create(Task(title="t", organization_id="org-1", created_by_id="u1"))
        store.delete(task.id)
        assert store.get(task.id) is None
