"""
auth/dependencies.py -- Request identity resolution and FastAPI Depends() helpers.

Two credential locations are checked in priority order:
  1. Authorization: Bearer <token> header -- API clients.
  2. "auth_token" cookie -- set by GET /login for the browser.

A Bearer header that is present but fails verification is final: the cookie
is not consulted as a fallback, so a client never ends up authenticated as
someone other than the token it explicitly presented.

resolve_identity() is the soft variant (returns None on failure).
get_current_user() wraps it and raises AppError(AUTH_REQUIRED, 401).

With STRICT_SESSIONS=true the presented token must also be the one recorded
in the session store, which makes logout revocation enforced instead of
advisory. Store errors in that path propagate (500) rather than letting the
request through.

Layer rule: auth/dependencies.py may import from fastapi because it is part
of the dependency injection system. No imports from api/.
"""

from __future__ import annotations

import hmac

from fastapi import Request

from auth.models import TokenClaims
from auth.tokens import AUTH_COOKIE_NAME
from core.errors import AppError, ErrorCode

_BEARER_PREFIX = "Bearer "


def presented_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith(_BEARER_PREFIX):
        return auth_header[len(_BEARER_PREFIX) :].strip()
    return request.cookies.get(AUTH_COOKIE_NAME) or None


def resolve_identity(request: Request) -> TokenClaims | None:
    """Return the verified identity behind the request, or None.

    Never raises for a bad or missing credential. Callers that need a hard
    401 should use get_current_user().
    """
    token = presented_token(request)
    if not token:
        return None

    state = request.app.state
    claims = state.tokens.verify(token)
    if claims is None:
        return None

    if state.settings.strict_sessions:
        current = state.sessions.peek_session(claims.user_id)
        if current is None or not hmac.compare_digest(current, token):
            return None

    return claims


def get_current_user(request: Request) -> TokenClaims:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: TokenClaims = Depends(get_current_user)): ...
    """
    claims = resolve_identity(request)
    if claims is None:
        raise AppError(ErrorCode.AUTH_REQUIRED, http_status=401)
    return claims
