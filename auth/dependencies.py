"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

get_auth_context() runs the RequestAuthenticator stored on app.state and
returns the typed AuthContext. Any AuthError becomes HTTP 401 with the
error's stable code and message in the detail dict.

get_identity() is the common case: routes that only need who the caller is.
require_session() additionally insists the caller authenticated with a
session token (JWT callers get 401 invalid_session).

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for Depends/HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from auth.authenticator import RequestAuthenticator
from auth.errors import AuthError, InvalidOrExpiredSession
from auth.models import AuthContext, IdentityContext


def _unauthorized(exc: AuthError) -> HTTPException:
    return HTTPException(status_code=401, detail=exc.to_detail())


def get_auth_context(request: Request) -> AuthContext:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(ctx: AuthContext = Depends(get_auth_context)): ...
    """
    authenticator: RequestAuthenticator = request.app.state.authenticator
    try:
        return authenticator.authenticate(request)
    except AuthError as exc:
        raise _unauthorized(exc) from exc


def get_identity(ctx: AuthContext = Depends(get_auth_context)) -> IdentityContext:
    return ctx.identity


def require_session(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
    """Require a session-authenticated request (not a bearer JWT)."""
    if ctx.session is None:
        raise _unauthorized(InvalidOrExpiredSession())
    return ctx
