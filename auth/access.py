"""
auth/access.py -- Access Evaluator and the single authorization entry point.

Two independent checks, composed by every protected operation:

  Role sufficiency
      caller rank >= required rank, ranks from auth.models.ROLE_RANK.
      Deletion adds a fine-grained rule: the caller is an Owner, or an Admin
      who created the resource. An Admin passes the coarse check for delete
      but is still refused someone else's resource.

  Organization reachability
      the resource's organization equals the caller's, OR the caller is an
      Owner and the resource's organization is a direct child of the
      caller's. Exactly one level: never grandchildren. Collection queries
      use the inverse form, accessible_organization_ids().

Role sufficiency is evaluated first and short-circuits. Reachability is
evaluated whenever a specific existing resource is involved, reads included.

OperationPolicy is the explicit per-operation declaration handed to the
dispatch layer -- {requires_auth, min_role, creator_or_owner, resource_type}
-- instead of decorator metadata discovered by reflection.

AccessGuard.validate_and_authorize() is the one entry point the resource
layer uses: token -> Identity, then both checks. Every denial of an
authenticated caller is written to the audit trail before it surfaces.
The guard holds no state of its own; collaborators are passed in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from audit.models import AuditAction, RequestContext
from audit.recorder import AuditRecorder
from auth.models import ROLE_RANK, Identity, Role
from auth.sessions import SessionValidator
from core.errors import (
    AuditWriteError,
    AuthenticationError,
    AuthorizationError,
    InsufficientRole,
    OrganizationAccessDenied,
    TokenInvalid,
)
from orgs.store import OrganizationDirectory

logger = logging.getLogger("tasktracker.access")


@dataclass(frozen=True)
class OperationPolicy:
    """What an operation requires of its caller.

    requires_auth     False for the public operations (registration, login,
                      organization listing). A token sent to a public
                      operation is resolved if valid and ignored if not.
    min_role          coarse role floor; None = any authenticated identity.
    creator_or_owner  the deletion rule: Owner, or Admin who created the resource.
    resource_type     label written to the audit trail when a check fails.
    """

    requires_auth: bool = True
    min_role: Role | None = None
    creator_or_owner: bool = False
    resource_type: str = "auth"


PUBLIC = OperationPolicy(requires_auth=False)
AUTHENTICATED = OperationPolicy()


def role_rank(role: Role) -> int:
    return ROLE_RANK[Role(role)]


def has_role(role: Role, required: Role) -> bool:
    """True if role ranks at or above required."""
    return role_rank(role) >= role_rank(required)


class AccessEvaluator:
    """Pure allow/deny decisions. Raises AuthorizationError subclasses on deny."""

    def __init__(self, directory: OrganizationDirectory) -> None:
        self.directory = directory

    # ------------------------------------------------------------------
    # Role sufficiency
    # ------------------------------------------------------------------

    def check_role(self, identity: Identity, required: Role) -> None:
        if not has_role(identity.role, required):
            raise InsufficientRole(f"role {Role(identity.role).value} is below required {Role(required).value}")

    def check_creator_or_owner(self, identity: Identity, created_by_id: str) -> None:
        if has_role(identity.role, Role.OWNER):
            return
        if Role(identity.role) is Role.ADMIN and created_by_id == identity.id:
            return
        raise InsufficientRole("only an Owner or the creating Admin may delete this resource")

    # ------------------------------------------------------------------
    # Organization reachability
    # ------------------------------------------------------------------

    def can_reach(self, identity: Identity, organization_id: str) -> bool:
        if organization_id == identity.organization_id:
            return True
        if not has_role(identity.role, Role.OWNER):
            return False
        org = self.directory.find_by_id(organization_id)
        return org is not None and org.parent_id == identity.organization_id

    def check_organization(self, identity: Identity, organization_id: str) -> None:
        if not self.can_reach(identity, organization_id):
            raise OrganizationAccessDenied(
                f"organization {organization_id} is not reachable from {identity.organization_id}"
            )

    def accessible_organization_ids(self, identity: Identity) -> set[str]:
        """The caller's organization, plus its direct children for an Owner."""
        org_ids = {identity.organization_id}
        if has_role(identity.role, Role.OWNER):
            org_ids.update(child.id for child in self.directory.find_children(identity.organization_id))
        return org_ids

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def evaluate(
        self,
        identity: Identity,
        policy: OperationPolicy,
        resource_org_id: str | None = None,
        resource_creator_id: str | None = None,
    ) -> None:
        """Apply every check the policy and the known resource facts call for.

        resource_org_id / resource_creator_id are None before the resource is
        loaded; the matching checks run once they are supplied.
        """
        if policy.min_role is not None:
            self.check_role(identity, policy.min_role)
        if policy.creator_or_owner and resource_creator_id is not None:
            self.check_creator_or_owner(identity, resource_creator_id)
        if resource_org_id is not None:
            self.check_organization(identity, resource_org_id)


class AccessGuard:
    """Session validation + access evaluation + denial auditing, in one call."""

    def __init__(self, validator: SessionValidator, evaluator: AccessEvaluator, recorder: AuditRecorder) -> None:
        self.validator = validator
        self.evaluator = evaluator
        self.recorder = recorder

    def validate_and_authorize(
        self,
        token: str | None,
        policy: OperationPolicy,
        resource_id: str | None = None,
        resource_org_id: str | None = None,
        resource_creator_id: str | None = None,
        context: RequestContext | None = None,
    ) -> Identity | None:
        """Resolve the token and authorize it against policy.

        Returns None only for a public operation called anonymously (or with
        a token that does not validate).
        """
        if not policy.requires_auth:
            if token is None:
                return None
            try:
                return self.validator.resolve(token)
            except AuthenticationError as exc:
                logger.info("Ignoring unusable token on public operation: %s", exc.reason)
                return None

        if token is None:
            raise TokenInvalid("no bearer token presented")
        try:
            identity = self.validator.resolve(token)
        except AuthenticationError as exc:
            logger.warning("Authentication failed: %s (%s)", exc.__class__.__name__, exc.reason)
            raise

        self.authorize(identity, policy, resource_id, resource_org_id, resource_creator_id, context)
        return identity

    def authorize(
        self,
        identity: Identity,
        policy: OperationPolicy,
        resource_id: str | None = None,
        resource_org_id: str | None = None,
        resource_creator_id: str | None = None,
        context: RequestContext | None = None,
    ) -> None:
        """Evaluate policy for an already-resolved identity; audit any denial."""
        try:
            self.evaluator.evaluate(identity, policy, resource_org_id, resource_creator_id)
        except AuthorizationError as exc:
            logger.warning(
                "Access denied: user=%s resource=%s/%s reason=%s",
                identity.id,
                policy.resource_type,
                resource_id,
                exc.reason,
            )
            try:
                self.recorder.record(
                    identity.id,
                    AuditAction.ACCESS_DENIED,
                    policy.resource_type,
                    resource_id,
                    f"Access denied: {exc.reason}",
                    context,
                )
            except AuditWriteError as audit_exc:
                # The denial is the outcome the caller must see.
                raise exc from audit_exc
            raise
