"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; these only own the shape.

User and Session are persisted by auth/store.py. IdentityContext and
AuthContext are request-scoped and never persisted.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """An account that can sign in.

    hashed_password is the stored secret. It is compared by the user-store
    collaborator (auth/tokens.py::verify_password), never by callers directly.
    """

    username: str
    hashed_password: str
    id: str | None = None
    created_at: datetime | None = None


@dataclass
class Session:
    """A database-backed login session.

    token is the opaque credential handed to the client: 64 hex chars from
    secrets.token_hex(32). expires_at is always creation/refresh time + TTL.

    is_active goes False on sign-out, explicit invalidation, or when a
    validation observes expires_at in the past. Expiry is enforced lazily at
    read time; delete_expired_sessions() only reclaims space.

    user is populated on lookup (find_by_token) and may be None on records
    returned straight from an insert.
    """

    user_id: str
    token: str
    expires_at: datetime
    id: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    user: User | None = None


@dataclass(frozen=True)
class IdentityContext:
    """Normalized result of a successful authentication.

    session_id is set only when the request authenticated with a session token.
    """

    subject: str
    username: str
    session_id: str | None = None


@dataclass(frozen=True)
class AuthContext:
    """What the authenticator hands to route handlers.

    session is the full Session record for session-authenticated requests,
    None for JWT-authenticated ones.
    """

    identity: IdentityContext
    session: Session | None = None
