"""
api/routes/auth.py -- Login handshake, logout and registration endpoints.

Routes:
  GET  /login          -- Digest handshake; sets auth_token cookie on success
  POST /api/logout     -- clears cookie; always 200
  POST /api/register   -- create an account (stores HA1 only)

Login outcomes:
  no Authorization header        -> 401 + WWW-Authenticate challenge, code 1000
  any rejected Digest header     -> 401, code 1001, NO WWW-Authenticate
                                    (tells the client "wrong credentials",
                                    not "send credentials")
  success                        -> 200 {userId, username} + cookie
  user/secret store failure      -> 500 via the generic handler

Logout is two-phase: the client-facing outcome (cookie cleared, 200) is
decided synchronously and cannot fail; revoking the server-side session runs
afterwards as a background task whose failures are logged, not returned.
"""

from __future__ import annotations

import logging
import sqlite3

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.models import Envelope, ErrorResponse, IdentityData, RegisteredUserData, RegisterRequest
from auth.dependencies import presented_token
from auth.digest import AuthenticationFailed, authenticate, derive_credential_hash, issue_challenge
from auth.models import User
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import TokenService, clear_auth_cookie, set_auth_cookie
from core.config import Settings
from core.errors import AppError, ErrorCode, message_for
from core.validation import validate_nickname, validate_password, validate_username

logger = logging.getLogger("loverse.api.auth")

# Auth policy:
# - GET  /login:         public -- this IS the authentication step
# - POST /api/logout:    public -- clearing a cookie needs no prior auth
# - POST /api/register:  public
router = APIRouter()


def _no_store(resp: JSONResponse) -> JSONResponse:
    # Login responses carry credentials or challenges; never cache them.
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


@router.get("/login")
def login(request: Request) -> JSONResponse:
    """Run one step of the Digest handshake."""
    state = request.app.state
    settings: Settings = state.settings
    header = request.headers.get("Authorization")

    if not header:
        resp = JSONResponse(
            status_code=401,
            content=ErrorResponse(
                code=int(ErrorCode.AUTH_REQUIRED), message=message_for(ErrorCode.AUTH_REQUIRED)
            ).model_dump(),
        )
        resp.headers["WWW-Authenticate"] = issue_challenge(settings.digest_realm, state.nonces)
        return _no_store(resp)

    user_store: UserStore = state.user_store
    try:
        user = authenticate(
            user_store,
            request.method,
            header,
            realm=settings.digest_realm,
            request_path=request.url.path,
            nonces=state.nonces,
        )
    except AuthenticationFailed as exc:
        return _no_store(JSONResponse(status_code=exc.http_status, content=exc.to_dict()))

    tokens: TokenService = state.tokens
    token = tokens.issue(user.id, user.username)

    sessions: SessionStore = state.sessions
    try:
        sessions.record_session(user.id, token)
    except sqlite3.Error:
        # The token verifies on its own; only revocation is lost for this session.
        logger.warning("Could not record session for user_id=%d", user.id, exc_info=True)

    logger.info("Login succeeded for user_id=%d", user.id)
    resp = JSONResponse(
        status_code=200,
        content=Envelope(
            message="登录成功",
            data=IdentityData(userId=user.id, username=user.username),
        ).model_dump(),
    )
    set_auth_cookie(resp, token, max_age=settings.token_expire_seconds, secure=settings.secure_cookies)
    return _no_store(resp)


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------


def revoke_in_background(sessions: SessionStore, user_id: int) -> bool:
    """Best-effort server-side revocation. Returns whether it succeeded.

    Runs after the logout response has been sent. Failures are logged here
    and go no further: the client already has its cleared cookie.
    """
    try:
        sessions.revoke_session(user_id)
    except sqlite3.Error:
        logger.warning("Session revocation failed for user_id=%d", user_id, exc_info=True)
        return False
    logger.info("Session revoked for user_id=%d", user_id)
    return True


@router.post("/api/logout")
def logout(request: Request, background_tasks: BackgroundTasks) -> JSONResponse:
    """Clear the auth cookie and schedule revocation of the caller's session."""
    state = request.app.state
    settings: Settings = state.settings

    resp = JSONResponse(content=Envelope(message="登出成功", data=None).model_dump())
    clear_auth_cookie(resp, secure=settings.secure_cookies)

    # Signature/expiry only: logout must work even when strict session
    # checking would already reject the token.
    token = presented_token(request)
    claims = state.tokens.verify(token) if token else None
    if claims is not None:
        background_tasks.add_task(revoke_in_background, state.sessions, claims.user_id)
    return resp


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@router.post("/api/register")
def register(request: Request, body: RegisterRequest) -> Envelope:
    """Create an account. Only the Digest HA1 of the password is stored."""
    if not body.username or not body.password or not body.nickname:
        raise AppError(ErrorCode.MISSING_REQUIRED_FIELD)

    validate_username(body.username)
    validate_password(body.password)
    validate_nickname(body.nickname)

    user_store: UserStore = request.app.state.user_store
    if user_store.get_by_username(body.username) is not None:
        raise AppError(ErrorCode.USER_ALREADY_EXISTS)

    settings: Settings = request.app.state.settings
    new_user = User(
        username=body.username,
        ha1=derive_credential_hash(body.username, body.password, realm=settings.digest_realm),
        nickname=body.nickname,
    )
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError as exc:
        # Lost a race with a concurrent registration of the same name.
        raise AppError(ErrorCode.USER_ALREADY_EXISTS) from exc

    logger.info("Registered user_id=%d", user_id)
    return Envelope(
        message="注册成功",
        data=RegisteredUserData(userId=user_id, username=new_user.username, nickname=new_user.nickname),
    )
