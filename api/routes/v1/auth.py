"""
api/routes/v1/auth.py -- Session endpoints: register, login, logout, me.

Routes:
  POST /api/v1/auth/register   -- create identity + issue session (public)
  POST /api/v1/auth/login      -- password login; returns bearer token (public)
  POST /api/v1/auth/logout     -- audited client-side discard (public, token optional)
  GET  /api/v1/auth/me         -- current identity (requires auth)

Security:
  POST /login and /register are rate-limited per IP (settings.login_rate_limit).
  SessionIssuer.authenticate() equalizes timing for unknown usernames -- use
  it, never inline a lookup + password check.
  Cache-Control: no-store on every response that carries a token.
  Wrong username and wrong password produce the same 401 body.

Tokens are never revoked server-side. Logout records the event for the audit
trail and tells the client to drop the token; the token itself stays valid
until it expires.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import IdentityResponse, LoginRequest, RegisterRequest, SessionResponse
from audit.models import AuditAction
from auth.dependencies import client_context, get_current_identity, get_optional_identity
from auth.models import Identity
from auth.sessions import SessionIssuer
from auth.store import CredentialStore
from core.config import get_settings

_settings = get_settings()

# Auth policy:
# - POST /api/v1/auth/register:  public -- registration issues the first session
# - POST /api/v1/auth/login:     public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:    public -- a token, if sent and valid, attributes the audit record
# - GET  /api/v1/auth/me:        requires auth (get_current_identity)
router = APIRouter()


def _session_response(body: SessionResponse, status_code: int) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=SessionResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an identity in an existing organization and issue its first session.

    409 if the username is taken, 404 if the organization does not exist.
    """
    issuer: SessionIssuer = request.app.state.issuer
    session, identity = issuer.register_identity(
        body.username,
        body.password,
        body.role,
        body.organization_id,
        context=client_context(request),
    )
    return _session_response(SessionResponse.from_session(session, identity), status_code=201)


@limiter.limit(_settings.login_rate_limit)  # brute-force mitigation
@router.post("/auth/login", response_model=SessionResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; return a bearer token.

    Failures raise InvalidCredentials, rendered as a uniform 401 by the
    TrackerError handler in api/main.py.
    """
    issuer: SessionIssuer = request.app.state.issuer
    credentials: CredentialStore = request.app.state.credentials
    session = issuer.authenticate(body.username, body.password, context=client_context(request))
    identity = credentials.find_by_id(session.subject_id)
    return _session_response(SessionResponse.from_session(session, identity), status_code=200)


@router.post("/auth/logout")
def logout(request: Request, identity: Identity | None = Depends(get_optional_identity)) -> JSONResponse:
    """Acknowledge logout. The client must discard its token."""
    if identity is not None:
        request.app.state.recorder.record(
            identity.id,
            AuditAction.LOGOUT,
            "auth",
            identity.id,
            "User logged out",
            client_context(request),
        )
    resp = JSONResponse(content={"message": "Logged out."})
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=IdentityResponse)
def me(identity: Identity = Depends(get_current_identity)) -> IdentityResponse:
    """Return the identity the presented token resolves to, as currently stored."""
    return IdentityResponse.from_identity(identity)
