"""
api/routes/v1/auth.py -- Sign-in, sign-out, and session endpoints.

Routes:
  POST /api/v1/auth/login       -- credential sign-in; returns access + session tokens
  POST /api/v1/auth/logout      -- invalidates the request's session token, clears cookie
  POST /api/v1/auth/logout-all  -- invalidates every session of the caller (requires auth)
  POST /api/v1/auth/refresh     -- extends the caller's session (requires session auth)
  GET  /api/v1/auth/me          -- caller's identity context (requires auth)

Security:
  Unknown username and wrong password return the same 401 invalid_credentials.
  Cache-Control: no-store on responses that carry tokens.
  user agent and client IP come from request metadata, never from the body.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.models import MeResponse, MessageResponse, RefreshResponse, SignInRequest, SignInResponse
from auth.authenticator import CredentialKind, RequestAuthenticator
from auth.dependencies import get_identity, require_session
from auth.errors import InvalidCredentials, InvalidOrExpiredSession
from auth.models import AuthContext, IdentityContext
from auth.service import AuthService
from auth.tokens import clear_session_cookie, set_session_cookie
from core.config import Settings

# Auth policy:
# - POST /api/v1/auth/login:       public -- sign-in must be unauthenticated
# - POST /api/v1/auth/logout:      public -- unknown or missing token is a no-op
# - POST /api/v1/auth/logout-all:  requires auth (get_identity)
# - POST /api/v1/auth/refresh:     requires session auth (require_session)
# - GET  /api/v1/auth/me:          requires auth (get_identity)
router = APIRouter()


def _session_max_age(settings: Settings) -> int:
    return settings.session_expires_in_days * 24 * 60 * 60


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=SignInResponse)
def login(request: Request, body: SignInRequest) -> JSONResponse:
    """Authenticate with username and password; issue both token kinds.

    The session token is also set as an httpOnly cookie so browser clients
    can rely on the cookie extractor instead of the x-session-token header.
    """
    auth_service: AuthService = request.app.state.auth_service
    settings: Settings = request.app.state.settings

    try:
        result = auth_service.sign_in(
            body.username,
            body.password,
            user_agent=request.headers.get("user-agent"),
            ip_address=request.client.host if request.client else None,
        )
    except InvalidCredentials as exc:
        resp = JSONResponse(status_code=401, content={"error": exc.to_detail()})
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = JSONResponse(
        status_code=200,
        content=SignInResponse(
            access_token=result.access_token,
            session_token=result.session_token,
        ).model_dump(),
    )
    set_session_cookie(resp, result.session_token, _session_max_age(settings), secure=settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Invalidate the session token carried by this request, if any.

    Bearer-only requests have nothing to revoke (JWTs expire on their own),
    so they just get the cookie cleared.
    """
    authenticator: RequestAuthenticator = request.app.state.authenticator
    auth_service: AuthService = request.app.state.auth_service

    candidate = authenticator.extract(request)
    if candidate is not None and candidate[0] is CredentialKind.session:
        auth_service.sign_out(candidate[1])

    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    clear_session_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout-all", response_model=MessageResponse)
def logout_all(request: Request, identity: IdentityContext = Depends(get_identity)) -> JSONResponse:
    """Invalidate every session owned by the caller ("log out everywhere")."""
    auth_service: AuthService = request.app.state.auth_service
    auth_service.sign_out_everywhere(identity.subject)

    resp = JSONResponse(content=MessageResponse(message="All sessions logged out.").model_dump())
    clear_session_cookie(resp)
    return resp


@router.post("/auth/refresh", response_model=RefreshResponse)
def refresh(request: Request, ctx: AuthContext = Depends(require_session)) -> JSONResponse:
    """Extend the caller's session to now + session TTL.

    require_session() has already validated the session, so an expired
    session is rejected here rather than revived.
    """
    auth_service: AuthService = request.app.state.auth_service
    settings: Settings = request.app.state.settings

    session = auth_service.refresh_session(ctx.session.token)
    if session is None:
        raise HTTPException(status_code=401, detail=InvalidOrExpiredSession().to_detail())

    resp = JSONResponse(
        content=RefreshResponse(
            session_token=session.token,
            expires_at=session.expires_at,
        ).model_dump(mode="json"),
    )
    set_session_cookie(resp, session.token, _session_max_age(settings), secure=settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(identity: IdentityContext = Depends(get_identity)) -> MeResponse:
    """Return the identity context for the currently authenticated caller."""
    return MeResponse(
        sub=identity.subject,
        username=identity.username,
        session_id=identity.session_id,
    )
