"""
core/errors.py -- Error taxonomy for the task tracker.

Every failure the authorization core can surface is a TrackerError subclass.
Each class carries three things:

  code         -- machine-readable family code ("unauthorized", "forbidden", ...)
  message      -- the generic client-facing message for that family
  status_code  -- the HTTP status the API layer maps it to

Subclasses inside one family share the family's code and message on purpose:
a client sees "Authentication required." for an unknown username, a wrong
password, a tampered token and an expired token alike. The specific class and
its `reason` attribute are what logging and the audit trail see.

None of these are retried or downgraded inside the core -- they propagate to
the API layer, which renders them through a single exception handler.

Layer rule: core/ is the kernel. No imports from any other project package.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for every domain error the API layer knows how to render."""

    code: str = "error"
    message: str = "Request failed."
    status_code: int = 400

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or self.__class__.__name__
        super().__init__(self.reason)


# ---------------------------------------------------------------------------
# Authentication -- outward signal "unauthenticated" (401)
# ---------------------------------------------------------------------------


class AuthenticationError(TrackerError):
    code = "unauthorized"
    message = "Authentication required."
    status_code = 401


class InvalidCredentials(AuthenticationError):
    message = "Invalid username or password."


class TokenInvalid(AuthenticationError):
    pass


class TokenExpired(AuthenticationError):
    pass


class IdentityNotFound(AuthenticationError):
    pass


# ---------------------------------------------------------------------------
# Authorization -- outward signal "forbidden" (403)
# ---------------------------------------------------------------------------


class AuthorizationError(TrackerError):
    code = "forbidden"
    message = "You do not have access to this resource."
    status_code = 403


class InsufficientRole(AuthorizationError):
    pass


class OrganizationAccessDenied(AuthorizationError):
    pass


# ---------------------------------------------------------------------------
# User-correctable input errors
# ---------------------------------------------------------------------------


class ConflictError(TrackerError):
    code = "conflict"
    status_code = 409


class DuplicateUsername(ConflictError):
    message = "A user with that username already exists."


class DuplicateOrganization(ConflictError):
    message = "An organization with that name already exists."


class NotFoundError(TrackerError):
    code = "not_found"
    status_code = 404


class OrganizationNotFound(NotFoundError):
    message = "Organization not found."


class ResourceNotFound(NotFoundError):
    message = "Resource not found."


class ValidationError(TrackerError):
    code = "invalid_request"
    status_code = 400


class OrganizationDepthExceeded(ValidationError):
    message = "Organizations may only be nested one level below a root organization."


class PasswordTooLong(ValidationError):
    message = "Password must be at most 72 bytes when UTF-8 encoded."


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------


class AuditWriteError(TrackerError):
    """The audit append failed. Fatal to the enclosing operation (fail-closed)."""

    code = "internal_error"
    message = "An unexpected error occurred."
    status_code = 500
