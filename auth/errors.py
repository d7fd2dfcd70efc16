"""
auth/errors.py -- Authentication failure taxonomy.

Every rejection the auth layer can produce is one of the AuthError subclasses
below. Each carries a stable machine-readable code and a client-safe message.
Messages never reveal internal state (e.g. whether a username exists).

All four are terminal: the caller must re-authenticate. Store I/O failures
(SQLAlchemy exceptions) are NOT part of this taxonomy and propagate unchanged.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for authentication failures. Maps to HTTP 401."""

    code: str = "unauthorized"
    message: str = "Authentication required."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class NoCredential(AuthError):
    """Neither a session token nor a bearer token could be extracted."""

    code = "no_credential"
    message = "No authentication token provided."


class InvalidOrExpiredSession(AuthError):
    """A session token was supplied but is unknown, inactive, or expired."""

    code = "invalid_session"
    message = "Invalid or expired session."


class InvalidOrExpiredJwt(AuthError):
    """A bearer token was supplied but failed verification for any reason."""

    code = "invalid_token"
    message = "Invalid or expired JWT token."


class InvalidCredentials(AuthError):
    """Sign-in failed. Unknown username and wrong password are indistinguishable."""

    code = "invalid_credentials"
    message = "Invalid username or password."
