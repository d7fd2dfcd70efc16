"""
auth/service.py -- Sign-in orchestration.

One login = credential check (UserStore) -> new session (SessionManager) ->
signed access token (JwtCodec). Both returned tokens are independent, valid
credentials: a client may send either on later requests.

Unknown username and wrong password collapse into one InvalidCredentials so
the response never reveals which part failed.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.errors import InvalidCredentials
from auth.models import Session
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.tokens import JwtCodec, authenticate_user

logger = logging.getLogger("brosauth.auth")


@dataclass(frozen=True)
class SignInResult:
    access_token: str
    session_token: str


class AuthService:
    def __init__(self, users: UserStore, sessions: SessionManager, jwt_codec: JwtCodec) -> None:
        self.users = users
        self.sessions = sessions
        self.jwt_codec = jwt_codec

    def sign_in(
        self,
        username: str,
        password: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> SignInResult:
        """Verify credentials and issue a session token plus an access token.

        Raises InvalidCredentials for an unknown username or a wrong password.
        Store errors propagate unchanged.
        """
        user = authenticate_user(self.users, username, password)
        if user is None:
            logger.info("Sign-in rejected from %s", ip_address or "unknown")
            raise InvalidCredentials()

        session = self.sessions.create_session(user.id, user_agent=user_agent, ip_address=ip_address)
        access_token = self.jwt_codec.sign(user.id, user.username)
        return SignInResult(access_token=access_token, session_token=session.token)

    def sign_out(self, session_token: str) -> None:
        """Invalidate session_token. Unknown tokens are a no-op."""
        self.sessions.invalidate_session(session_token)

    def sign_out_everywhere(self, user_id: str) -> None:
        self.sessions.invalidate_all_sessions_for_user(user_id)

    def validate_session(self, session_token: str) -> Session | None:
        return self.sessions.validate_session(session_token)

    def refresh_session(self, session_token: str) -> Session | None:
        return self.sessions.refresh_session(session_token)
