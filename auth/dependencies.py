"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The session token travels as `Authorization: Bearer <token>`. No header means
anonymous, which only public operations accept.

authorize(policy) is a dependency factory: each route declares the
OperationPolicy it needs and receives the resolved Identity (or None for an
anonymous call to a public operation). All the work happens in the
AccessGuard on app.state -- these helpers only pull the token and client
metadata off the request.

  get_current_identity   -- any authenticated identity; 401 otherwise.
  get_optional_identity  -- public; Identity if a valid token was sent, else None.

Layer rule: no imports from api/ or tasks/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from audit.models import RequestContext
from auth.access import AUTHENTICATED, PUBLIC, AccessGuard, OperationPolicy
from auth.models import Identity


def bearer_token(request: Request) -> str | None:
    """Return the bearer credential from the Authorization header, if any."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None


def client_context(request: Request) -> RequestContext:
    """Capture the caller's IP address and User-Agent for the audit trail."""
    return RequestContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def authorize(policy: OperationPolicy) -> Callable[[Request], Identity | None]:
    """Dependency factory: resolve the bearer token and apply policy.

    Use as a FastAPI dependency:
        @router.get("/audit-logs")
        def route(identity: Identity = Depends(authorize(QUERY_AUDIT))): ...
    """

    def _dependency(request: Request) -> Identity | None:
        guard: AccessGuard = request.app.state.guard
        return guard.validate_and_authorize(bearer_token(request), policy, context=client_context(request))

    return _dependency


get_current_identity = authorize(AUTHENTICATED)
get_optional_identity = authorize(PUBLIC)
