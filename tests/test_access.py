"""
tests/test_access.py -- AccessEvaluator and AccessGuard.

Covers:
  - role ranking is a total order: Owner > Admin > Viewer
  - Owner reaches its own organization and direct children, never a
    grandchild or an unrelated organization; Admin/Viewer reach only their own
  - accessible_organization_ids() is the inverse of reachability
  - deletion rule: Owner always, Admin only for its own resources, Viewer never
  - AccessGuard writes exactly one access_denied record per denial and
    re-raises the original error even if that write fails
  - public policies treat missing or unusable tokens as anonymous
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from audit.models import AuditAction
from auth.access import PUBLIC, AccessEvaluator, AccessGuard, OperationPolicy, has_role
from auth.models import Identity, Role
from core.database import audit_logs
from core.errors import AuditWriteError, InsufficientRole, OrganizationAccessDenied, TokenInvalid
from orgs.models import Organization

ROLES = [Role.VIEWER, Role.ADMIN, Role.OWNER]


def _identity(role: Role, org_id: str, identity_id: str = "user-1") -> Identity:
    return Identity(username=identity_id, password_hash="x", role=role, organization_id=org_id, id=identity_id)


def _denials(engine):
    with engine.connect() as conn:
        return conn.execute(
            audit_logs.select().where(audit_logs.c.action == AuditAction.ACCESS_DENIED.value)
        ).fetchall()


class TestRoleRank:
    @pytest.mark.parametrize("role", ROLES)
    @pytest.mark.parametrize("required", ROLES)
    def test_has_role_follows_rank_order(self, role, required):
        assert has_role(role, required) == (ROLES.index(role) >= ROLES.index(required))

    def test_check_role_raises_below_floor(self, core, orgs):
        viewer = _identity(Role.VIEWER, orgs["A"].id)
        with pytest.raises(InsufficientRole):
            core.evaluator.check_role(viewer, Role.ADMIN)
        core.evaluator.check_role(viewer, Role.VIEWER)


class TestReachability:
    def test_owner_reaches_own_and_child(self, core, orgs):
        owner = _identity(Role.OWNER, orgs["A"].id)
        assert core.evaluator.can_reach(owner, orgs["A"].id)
        assert core.evaluator.can_reach(owner, orgs["B"].id)
        assert not core.evaluator.can_reach(owner, orgs["C"].id)

    def test_admin_does_not_reach_child(self, core, orgs):
        admin = _identity(Role.ADMIN, orgs["A"].id)
        assert core.evaluator.can_reach(admin, orgs["A"].id)
        assert not core.evaluator.can_reach(admin, orgs["B"].id)

    def test_child_owner_does_not_reach_parent(self, core, orgs):
        owner = _identity(Role.OWNER, orgs["B"].id)
        assert not core.evaluator.can_reach(owner, orgs["A"].id)

    def test_owner_never_reaches_grandchild(self):
        """Reachability stops one level down even if deeper data exists."""
        directory = MagicMock()
        tree = {
            "root": Organization(name="root", id="root"),
            "child": Organization(name="child", parent_id="root", id="child"),
            "grandchild": Organization(name="grandchild", parent_id="child", id="grandchild"),
        }
        directory.find_by_id.side_effect = tree.get
        evaluator = AccessEvaluator(directory)
        owner = _identity(Role.OWNER, "root")
        assert evaluator.can_reach(owner, "child")
        assert not evaluator.can_reach(owner, "grandchild")

    def test_check_organization_raises(self, core, orgs):
        viewer = _identity(Role.VIEWER, orgs["A"].id)
        with pytest.raises(OrganizationAccessDenied):
            core.evaluator.check_organization(viewer, orgs["C"].id)

    def test_accessible_set_for_owner_includes_children(self, core, orgs):
        owner = _identity(Role.OWNER, orgs["A"].id)
        assert core.evaluator.accessible_organization_ids(owner) == {orgs["A"].id, orgs["B"].id}

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.VIEWER])
    def test_accessible_set_for_non_owner_is_own_org(self, core, orgs, role):
        assert core.evaluator.accessible_organization_ids(_identity(role, orgs["A"].id)) == {orgs["A"].id}


class TestDeletionRule:
    def test_owner_may_delete_anything(self, core, orgs):
        core.evaluator.check_creator_or_owner(_identity(Role.OWNER, orgs["A"].id), "someone-else")

    def test_admin_may_delete_own(self, core, orgs):
        core.evaluator.check_creator_or_owner(_identity(Role.ADMIN, orgs["A"].id, "admin-1"), "admin-1")

    def test_admin_may_not_delete_others(self, core, orgs):
        with pytest.raises(InsufficientRole):
            core.evaluator.check_creator_or_owner(_identity(Role.ADMIN, orgs["A"].id, "admin-1"), "admin-2")

    def test_viewer_may_not_delete_even_own(self, core, orgs):
        with pytest.raises(InsufficientRole):
            core.evaluator.check_creator_or_owner(_identity(Role.VIEWER, orgs["A"].id, "v-1"), "v-1")

    def test_role_is_checked_before_organization(self, core, orgs):
        """A Viewer outside the organization is refused for role, not for reach."""
        policy = OperationPolicy(min_role=Role.ADMIN)
        with pytest.raises(InsufficientRole):
            core.evaluator.evaluate(_identity(Role.VIEWER, orgs["C"].id), policy, resource_org_id=orgs["A"].id)


class TestAccessGuard:
    def test_valid_token_is_authorized(self, core, orgs):
        session, identity = core.register("owner", Role.OWNER, orgs["A"].id)
        policy = OperationPolicy(min_role=Role.ADMIN, resource_type="task")
        resolved = core.guard.validate_and_authorize(session.access_token, policy, resource_org_id=orgs["B"].id)
        assert resolved.id == identity.id

    def test_missing_token_on_protected_operation(self, core):
        with pytest.raises(TokenInvalid):
            core.guard.validate_and_authorize(None, OperationPolicy())

    def test_public_operation_without_token(self, core):
        assert core.guard.validate_and_authorize(None, PUBLIC) is None

    def test_public_operation_with_bad_token_is_anonymous(self, core):
        assert core.guard.validate_and_authorize("garbage", PUBLIC) is None

    def test_public_operation_with_valid_token_resolves(self, core, orgs):
        session, identity = core.register("v", Role.VIEWER, orgs["A"].id)
        assert core.guard.validate_and_authorize(session.access_token, PUBLIC).id == identity.id

    def test_denial_is_audited_once(self, core, orgs, engine):
        session, identity = core.register("viewer", Role.VIEWER, orgs["A"].id)
        policy = OperationPolicy(min_role=Role.ADMIN, resource_type="task")

        with pytest.raises(InsufficientRole):
            core.guard.validate_and_authorize(session.access_token, policy, resource_id="task-9")

        denials = _denials(engine)
        assert len(denials) == 1
        assert denials[0].actor_id == identity.id
        assert denials[0].resource_type == "task"
        assert denials[0].resource_id == "task-9"
        assert denials[0].details.startswith("Access denied:")

    def test_cross_org_denial_is_audited(self, core, orgs, engine):
        session, _ = core.register("admin-c", Role.ADMIN, orgs["C"].id)
        policy = OperationPolicy(min_role=Role.VIEWER, resource_type="task")
        with pytest.raises(OrganizationAccessDenied):
            core.guard.validate_and_authorize(session.access_token, policy, resource_org_id=orgs["A"].id)
        assert len(_denials(engine)) == 1

    def test_audit_failure_surfaces_original_denial(self, core, orgs):
        recorder = MagicMock()
        recorder.record.side_effect = AuditWriteError("disk full")
        guard = AccessGuard(core.validator, core.evaluator, recorder)

        with pytest.raises(InsufficientRole) as exc_info:
            guard.authorize(_identity(Role.VIEWER, orgs["A"].id), OperationPolicy(min_role=Role.OWNER))
        assert isinstance(exc_info.value.__cause__, AuditWriteError)
