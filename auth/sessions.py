"""
auth/sessions.py -- Session issuance (login, registration) and validation.

SessionIssuer
  authenticate()      username + password -> SessionToken, audited as `login`.
                      Any failure is audited as `access_denied` on resource
                      "auth" BEFORE InvalidCredentials surfaces (log-then-fail).
  register_identity() creates an identity and issues its first session in
                      one step, audited as `create` on resource "user".

SessionValidator
  resolve()           token -> current Identity. The token's role and
                      organization claims are NOT trusted: only `sub` is used,
                      and the identity is re-read from the Credential Store so
                      changes made out-of-band after issuance take effect on
                      the next request.

Neither class holds state between calls beyond its collaborators -- sessions
live entirely in the signed token.

Username enumeration: unknown usernames and wrong passwords raise the same
InvalidCredentials and cost the same bcrypt work. Only the log line (and the
audit details) tell them apart.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import NoReturn

from audit.models import AuditAction, RequestContext
from audit.recorder import AuditRecorder
from auth.models import Identity, Role, SessionToken
from auth.store import CredentialStore
from auth.tokens import burn_password_check, decode_session_token, encode_session_token, hash_password, verify_password
from core.errors import AuditWriteError, IdentityNotFound, InvalidCredentials, OrganizationNotFound
from orgs.store import OrganizationDirectory

logger = logging.getLogger("tasktracker.auth")

Clock = Callable[[], float]

DEFAULT_TTL_SECONDS = 24 * 60 * 60


class SessionIssuer:
    def __init__(
        self,
        credentials: CredentialStore,
        directory: OrganizationDirectory,
        recorder: AuditRecorder,
        secret_key: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Clock = time.time,
    ) -> None:
        self.credentials = credentials
        self.directory = directory
        self.recorder = recorder
        self._secret_key = secret_key
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def issue(self, identity: Identity) -> SessionToken:
        """Mint a signed token for an already-verified identity. Not audited."""
        issued_at = int(self._clock())
        expires_at = issued_at + self.ttl_seconds
        access_token = encode_session_token(
            subject_id=identity.id,
            username=identity.username,
            role=identity.role,
            organization_id=identity.organization_id,
            issued_at=issued_at,
            expires_at=expires_at,
            secret_key=self._secret_key,
        )
        return SessionToken(
            access_token=access_token,
            subject_id=identity.id,
            username=identity.username,
            role=Role(identity.role),
            organization_id=identity.organization_id,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def authenticate(self, username: str, password: str, context: RequestContext | None = None) -> SessionToken:
        """Verify credentials and issue a session.

        Raises InvalidCredentials for an unknown username or a wrong password.
        Exactly one audit record is written per call: `login` on success,
        `access_denied` on failure.
        """
        identity = self.credentials.find_by_username(username)
        if identity is None:
            # Equalize timing -- do NOT return early before running bcrypt
            burn_password_check(password)
            logger.warning("Login rejected: unknown username %r", username)
            self._deny_login(None, f"Failed login attempt for unknown username: {username}", context)
        elif not verify_password(password, identity.password_hash):
            logger.warning("Login rejected: wrong password for user %s", identity.id)
            self._deny_login(identity.id, "Failed login attempt", context)

        token = self.issue(identity)
        self.recorder.record(identity.id, AuditAction.LOGIN, "auth", identity.id, "User logged in", context)
        logger.info("User %s logged in", identity.id)
        return token

    def _deny_login(self, actor_id: str | None, details: str, context: RequestContext | None) -> NoReturn:
        """Record the rejected login, then raise InvalidCredentials.

        If the audit write itself fails, the caller still sees
        InvalidCredentials (chained to the AuditWriteError) -- a logging
        outage must not turn a bad password into a 500.
        """
        try:
            self.recorder.record(actor_id, AuditAction.ACCESS_DENIED, "auth", None, details, context)
        except AuditWriteError as exc:
            logger.error("Failed login could not be audited (actor=%s)", actor_id)
            raise InvalidCredentials("audit write failed for rejected login") from exc
        raise InvalidCredentials(details)

    def register_identity(
        self,
        username: str,
        password: str,
        role: Role,
        organization_id: str,
        context: RequestContext | None = None,
    ) -> tuple[SessionToken, Identity]:
        """Create an identity and issue its first session.

        Raises:
            DuplicateUsername:     username is taken (nothing is persisted).
            OrganizationNotFound:  organization_id does not resolve.
        """
        if self.directory.find_by_id(organization_id) is None:
            raise OrganizationNotFound(f"organization {organization_id!r} does not exist")

        identity = self.credentials.create(
            Identity(
                username=username,
                password_hash=hash_password(password),
                role=Role(role),
                organization_id=organization_id,
            )
        )
        token = self.issue(identity)
        self.recorder.record(identity.id, AuditAction.CREATE, "user", identity.id, "User registered", context)
        logger.info("User %s registered in organization %s as %s", identity.id, organization_id, identity.role.value)
        return token, identity


class SessionValidator:
    def __init__(self, credentials: CredentialStore, secret_key: str, clock: Clock = time.time) -> None:
        self.credentials = credentials
        self._secret_key = secret_key
        self._clock = clock

    def resolve(self, token: str) -> Identity:
        """Validate a presented token and return the CURRENT identity it names.

        Raises:
            TokenInvalid:      bad signature or malformed structure.
            TokenExpired:      the token's expiry has passed.
            IdentityNotFound:  the account no longer exists.
        """
        claims = decode_session_token(token, self._secret_key, now=int(self._clock()))
        identity = self.credentials.find_by_id(claims["sub"])
        if identity is None:
            raise IdentityNotFound(f"identity {claims['sub']!r} no longer exists")
        return identity
