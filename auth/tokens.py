"""
auth/tokens.py -- JWT, password verification, and session token utilities.

Security design decisions:
  JWT: python-jose with HS256. JwtCodec is constructed with the secret and
       expiry from Settings (no module-level config). Tokens carry sub (user
       id), username, and exp. verify() returns None on any failure -- the
       authenticator turns that into InvalidOrExpiredJwt.

  Passwords: bcrypt, used directly. The stored secret is a bcrypt hash and
       the check is an exact match of the plaintext against it. The
       _DUMMY_HASH constant enables timing equalization in authenticate_user()
       so response time does not reveal whether a username exists.

  Session tokens: secrets.token_hex(32) gives 256 bits of entropy rendered as
       64 hex chars. Never derived from user input and never produced by the
       random module.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("brosauth.auth")

_ALGORITHM = "HS256"

SESSION_COOKIE_NAME = "session_token"

MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt rejects input longer than MAX_PASSWORD_BYTES (72) UTF-8 bytes with
    ValueError; callers check password_too_long() before hashing.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash, or input over MAX_PASSWORD_BYTES.
        return False


def password_too_long(plain: str) -> bool:
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("brosauth_timing_dummy")


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Check a username/password pair with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown username: bcrypt runs against _DUMMY_HASH
    - Wrong password: bcrypt runs against the real hash

    Returns the User on success, None on any failure. Both failure kinds are
    indistinguishable to the caller.
    """
    user = store.get_by_username(username)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


def generate_session_token() -> str:
    """Return a new opaque session token: 32 CSPRNG bytes as 64 hex chars."""
    return secrets.token_hex(32)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


class JwtCodec:
    """Sign and verify access tokens with a fixed secret and lifetime.

    Usage:
        codec = JwtCodec(settings.jwt_secret, settings.jwt_expires_in_seconds)
        token = codec.sign(user.id, user.username)
        payload = codec.verify(token)   # dict or None
    """

    def __init__(self, secret: str, expires_in_seconds: int) -> None:
        self._secret = secret
        self.expires_in_seconds = expires_in_seconds

    def sign(self, subject: str, username: str) -> str:
        expire = datetime.now(timezone.utc) + timedelta(seconds=self.expires_in_seconds)
        payload = {
            "sub": subject,
            "username": username,
            "exp": expire,
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> dict | None:
        """Decode and verify a JWT. Returns the payload dict or None on any failure.

        Malformed, expired, and badly signed tokens all come back as None; the
        specific cause is logged at debug level only.
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[_ALGORITHM])
        except JWTError as exc:
            logger.debug("JWT rejected: %s", exc)
            return None
        if "sub" not in payload or "username" not in payload:
            return None
        return payload


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, max_age: int, secure: bool = False) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POSTs.
    max_age: matches the session TTL so cookie and record expire together.
    """
    response.set_cookie(
        SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME)
