"""
auth/sessions.py -- Session lifecycle: issue, look up, expire, revoke, renew.

Expiry policy: lazy. Nothing sweeps sessions on a timer for correctness.
validate_session() checks expires_at on every read and deactivates an expired
record the first time it is touched, so an expired token can never be
replayed. delete_expired_sessions() exists only to reclaim space and is safe
to run alongside live traffic (pure predicate delete).

Races: validate-then-invalidate is not wrapped in a transaction. Two requests
validating the same just-expired token may both issue the invalidate; the
store-level update is conditional on is_active, so the outcome converges.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from auth.models import Session
from auth.store import SessionStore, utcnow
from auth.tokens import generate_session_token

logger = logging.getLogger("brosauth.auth")

DEFAULT_EXPIRES_IN_DAYS = 7


class SessionManager:
    """Business logic over SessionStore.

    expires_in_days is injected at construction (from Settings) rather than
    read from global state, so tests can build managers with any TTL.
    """

    def __init__(self, store: SessionStore, expires_in_days: int = DEFAULT_EXPIRES_IN_DAYS) -> None:
        self.store = store
        self.ttl = timedelta(days=expires_in_days)

    def generate_token(self) -> str:
        return generate_session_token()

    def create_session(
        self,
        user_id: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> Session:
        """Issue a new active session for user_id. Store errors propagate."""
        session = self.store.insert(
            Session(
                user_id=user_id,
                token=self.generate_token(),
                expires_at=utcnow() + self.ttl,
                user_agent=user_agent,
                ip_address=ip_address,
                is_active=True,
            )
        )
        logger.info("Session %s created for user %s", session.id, user_id)
        return session

    def find_by_token(self, token: str) -> Session | None:
        """Return the active session for token (with its user), expired or not."""
        return self.store.find_active_by_token(token)

    def validate_session(self, token: str) -> Session | None:
        """Return the session if it is active and unexpired, else None.

        An expired session is deactivated as a side effect before returning
        None. A valid session is returned unchanged.
        """
        session = self.find_by_token(token)
        if session is None:
            return None

        if utcnow() > session.expires_at:
            self.invalidate_session(token)
            logger.info("Session %s expired at %s; deactivated", session.id, session.expires_at.isoformat())
            return None

        return session

    def invalidate_session(self, token: str) -> None:
        """Deactivate one session. Unknown or already inactive tokens are a no-op."""
        self.store.deactivate_by_token(token)

    def invalidate_all_sessions_for_user(self, user_id: str) -> None:
        """Deactivate every session owned by user_id ("log out everywhere")."""
        count = self.store.deactivate_by_user(user_id)
        if count:
            logger.info("Deactivated %d session(s) for user %s", count, user_id)

    def delete_session(self, token: str) -> None:
        self.store.delete_by_token(token)

    def delete_expired_sessions(self) -> int:
        """Physically delete every session whose expires_at is before now.

        Returns the number of records removed.
        """
        count = self.store.delete_expired(utcnow())
        if count:
            logger.info("Purged %d expired session(s)", count)
        return count

    def refresh_session(self, token: str) -> Session | None:
        """Extend an active session to now + TTL and return the updated record.

        The lookup goes through find_by_token(), which does not check expiry:
        a session that is past expires_at but has not been deactivated yet is
        extended too. Returns None without writing when no active session
        matches.
        """
        session = self.find_by_token(token)
        if session is None:
            return None

        session.expires_at = utcnow() + self.ttl
        updated_at = self.store.update_expiry(session.id, session.expires_at)
        if updated_at is None:
            # Deleted or signed out between the lookup and the update.
            return None
        session.updated_at = updated_at
        return session
