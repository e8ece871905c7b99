"""
auth/tokens.py -- Session token and password hashing primitives.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (identity id), username,
       role, organization_id, iat and exp. Only sub is trusted after
       validation -- the Session Validator re-reads role and organization
       from the Credential Store on every request.

       Expiry is checked BEFORE the signature: an expired token is always
       reported as TokenExpired, whatever the state of its signature. Both
       outcomes map to the same 401 outward, so this ordering leaks nothing.

  Passwords: bcrypt, used directly (no passlib wrapper). The salt and cost
       factor live inside the hash string, so verification re-hashes the
       candidate with the stored parameters; bcrypt.checkpw compares digests
       in constant time. _DUMMY_HASH lets authentication run a full bcrypt
       check even for unknown usernames, so response time does not reveal
       whether an account exists.

Layer rule: no imports from api/ or tasks/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging

import bcrypt
from jose import jwt
from jose.exceptions import JOSEError

from auth.models import MAX_PASSWORD_BYTES, Role
from core.config import get_settings
from core.errors import PasswordTooLong, TokenExpired, TokenInvalid

logger = logging.getLogger("tasktracker.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

_REQUIRED_CLAIMS = frozenset({"sub", "username", "role", "organization_id", "iat", "exp"})

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises PasswordTooLong past MAX_PASSWORD_BYTES of UTF-8. The limit is in
    bytes, not characters: "é" alone takes two.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise PasswordTooLong(f"password is {len(encoded)} bytes")
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(encoded, salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        # No stored hash can have been made from it.
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash -- treat as a mismatch, never as a match.
        logger.warning("verify_password: stored hash is not a valid bcrypt hash")
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("tasktracker_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Run a bcrypt verification whose result is discarded.

    Called when the username does not exist so that path costs the same as
    a wrong-password check.
    """
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def encode_session_token(
    subject_id: str,
    username: str,
    role: Role,
    organization_id: str,
    issued_at: int,
    expires_at: int,
    secret_key: str,
) -> str:
    """Encode a signed JWT carrying the identity claims."""
    payload = {
        "sub": subject_id,
        "username": username,
        "role": Role(role).value,
        "organization_id": organization_id,
        "iat": issued_at,
        "exp": expires_at,
    }
    return jwt.encode(payload, secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str, secret_key: str, now: int) -> dict:
    """Verify a JWT and return its claims.

    Raises:
        TokenInvalid:  malformed structure, missing claims or bad signature.
        TokenExpired:  now is past the exp claim.
    """
    try:
        unverified = jwt.get_unverified_claims(token)
    except JOSEError as exc:
        raise TokenInvalid("malformed token") from exc

    if not isinstance(unverified, dict) or not _REQUIRED_CLAIMS <= unverified.keys():
        raise TokenInvalid("token is missing required claims")
    exp = unverified["exp"]
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise TokenInvalid("exp claim is not numeric")
    if now > exp:
        raise TokenExpired(f"token expired at {int(exp)}")

    try:
        # exp is already checked above against the caller's clock
        payload = jwt.decode(
            token,
            secret_key,
            algorithms=[_ALGORITHM],
            options={"verify_exp": False, "verify_iat": False},
        )
    except JOSEError as exc:
        raise TokenInvalid("signature verification failed") from exc

    try:
        Role(payload["role"])
    except ValueError as exc:
        raise TokenInvalid(f"unknown role claim {payload['role']!r}") from exc
    return payload
