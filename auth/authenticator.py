"""
auth/authenticator.py -- Request gate: extract a credential, verify it, return identity.

Two credential forms are accepted, evaluated by an ordered list of extractor
strategies (first non-empty candidate wins, no merging):

  1. x-session-token header  -- session token, raw value (first if repeated)
  2. session_token cookie    -- session token, raw value
  3. Authorization: Bearer   -- JWT access token

Dispatch is session-first and strict. If a session candidate exists, the
session check is authoritative: an unknown, inactive, or expired session is
rejected and the bearer header is never looked at. Only when no session
candidate exists is the JWT verified.

The authenticator is a pure decision over the request's headers and cookies.
It returns a typed AuthContext or raises an AuthError subclass; binding the
result to a handler is the framework's job (auth/dependencies.py).

Layer rule: no imports from api/. Starlette types are used for hints only.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from auth.errors import InvalidOrExpiredJwt, InvalidOrExpiredSession, NoCredential
from auth.models import AuthContext, IdentityContext
from auth.tokens import SESSION_COOKIE_NAME

if TYPE_CHECKING:
    from starlette.requests import HTTPConnection

    from auth.sessions import SessionManager
    from auth.tokens import JwtCodec

logger = logging.getLogger("brosauth.auth")

SESSION_HEADER_NAME = "x-session-token"


class CredentialKind(str, Enum):
    session = "session"
    bearer = "bearer"


# ---------------------------------------------------------------------------
# Extractor strategies
# ---------------------------------------------------------------------------


class SessionHeaderExtractor:
    """Session token from the x-session-token header. Repeated header -> first value."""

    kind = CredentialKind.session

    def extract(self, request: HTTPConnection) -> str | None:
        values = request.headers.getlist(SESSION_HEADER_NAME)
        if values and values[0]:
            return values[0]
        return None


class SessionCookieExtractor:
    kind = CredentialKind.session

    def extract(self, request: HTTPConnection) -> str | None:
        return request.cookies.get(SESSION_COOKIE_NAME) or None


class BearerExtractor:
    """JWT from "Authorization: Bearer <token>".

    The header must split on a single space into exactly a scheme and a
    credential. The scheme comparison is case-sensitive. Anything else
    (no header, no space, extra spaces, another scheme) yields no candidate.
    """

    kind = CredentialKind.bearer

    def extract(self, request: HTTPConnection) -> str | None:
        header = request.headers.get("authorization")
        if not header:
            return None
        parts = header.split(" ")
        if len(parts) != 2:
            return None
        scheme, credential = parts
        if scheme != "Bearer" or not credential:
            return None
        return credential


DEFAULT_EXTRACTORS = (
    SessionHeaderExtractor(),
    SessionCookieExtractor(),
    BearerExtractor(),
)


# ---------------------------------------------------------------------------
# Authenticator
# ---------------------------------------------------------------------------


class RequestAuthenticator:
    """Turn one inbound request into an AuthContext or an AuthError.

    Usage:
        authenticator = RequestAuthenticator(session_manager, jwt_codec)
        ctx = authenticator.authenticate(request)   # raises AuthError on rejection
    """

    def __init__(
        self,
        sessions: SessionManager,
        jwt_codec: JwtCodec,
        extractors=DEFAULT_EXTRACTORS,
    ) -> None:
        self.sessions = sessions
        self.jwt_codec = jwt_codec
        self.extractors = tuple(extractors)

    def extract(self, request: HTTPConnection) -> tuple[CredentialKind, str] | None:
        """Return (kind, token) for the first extractor that finds a candidate."""
        for extractor in self.extractors:
            token = extractor.extract(request)
            if token:
                return extractor.kind, token
        return None

    def authenticate(self, request: HTTPConnection) -> AuthContext:
        candidate = self.extract(request)
        if candidate is None:
            raise NoCredential()

        kind, token = candidate
        if kind is CredentialKind.session:
            return self._authenticate_session(token)
        return self._authenticate_bearer(token)

    def _authenticate_session(self, token: str) -> AuthContext:
        session = self.sessions.validate_session(token)
        if session is None:
            logger.debug("Rejected request: session token not valid")
            raise InvalidOrExpiredSession()

        identity = IdentityContext(
            subject=session.user_id,
            username=session.user.username,
            session_id=session.id,
        )
        return AuthContext(identity=identity, session=session)

    def _authenticate_bearer(self, token: str) -> AuthContext:
        payload = self.jwt_codec.verify(token)
        if payload is None:
            logger.debug("Rejected request: bearer token not valid")
            raise InvalidOrExpiredJwt()

        identity = IdentityContext(subject=payload["sub"], username=payload["username"])
        return AuthContext(identity=identity)
