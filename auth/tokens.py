"""
auth/tokens.py -- Session token (JWT) issue/verify and the auth cookie.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry userId, username, iat and exp
       (exp = iat + TOKEN_EXPIRE_SECONDS). Verification returns None on any
       failure -- bad signature, malformed token, expired, missing claims --
       so callers treat "invalid token" and "not logged in" identically.

  Secret: TokenService takes a secret provider (a zero-arg callable) instead
       of reading settings at import time. The app wires it to
       Settings.secret_key; tests pass their own. The provider is called on
       every issue/verify so a rotated key takes effect without a restart.

  Cookie: "auth_token", HttpOnly, SameSite=Strict, Path=/, Max-Age equal to
       the token TTL so both expire together. Secure only when
       SECURE_COOKIES=true (production).

Tokens are intentionally not idempotent: two tokens for the same user minted
a second apart differ in iat/exp and therefore in signature.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from jose import JWTError, jwt

from auth.models import TokenClaims

_ALGORITHM = "HS256"

AUTH_COOKIE_NAME = "auth_token"
DEFAULT_TOKEN_TTL = 3600


class TokenService:
    """Mints and verifies session tokens with an injected signing secret."""

    def __init__(self, secret_provider: Callable[[], str], ttl: int = DEFAULT_TOKEN_TTL) -> None:
        self._secret_provider = secret_provider
        self.ttl = ttl

    def issue(self, user_id: int, username: str, now: int | None = None) -> str:
        """Encode a signed JWT for a verified identity.

        Args:
            user_id:  Numeric user ID from the credential record.
            username: Username, carried for display without a DB lookup.
            now:      Issue time as a UNIX timestamp. Defaults to the current
                      time; tests pass an old value to mint expired tokens.

        No side effects. Recording the token in the session store is the
        caller's explicit next step.
        """
        issued_at = int(time.time()) if now is None else int(now)
        payload = {
            "userId": user_id,
            "username": username,
            "iat": issued_at,
            "exp": issued_at + self.ttl,
        }
        return jwt.encode(payload, self._secret_provider(), algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims | None:
        """Decode and verify a JWT. Returns the claims or None on any failure.

        Never raises. Expiry is checked by python-jose against the exp claim.
        """
        if not isinstance(token, str) or not token:
            return None
        try:
            payload = jwt.decode(token, self._secret_provider(), algorithms=[_ALGORITHM])
        except JWTError:
            return None

        user_id = payload.get("userId")
        username = payload.get("username")
        # bool is an int subclass; a crafted {"userId": true} must not pass.
        if not isinstance(user_id, int) or isinstance(user_id, bool) or not isinstance(username, str):
            return None
        return TokenClaims(user_id=user_id, username=username)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, max_age: int, secure: bool) -> None:
    """Write the session token as an HttpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="strict": never sent on cross-site requests (CSRF mitigation).
    max_age: matches the JWT expiry so both expire together.
    """
    response.set_cookie(
        AUTH_COOKIE_NAME,
        value=token,
        max_age=max_age,
        path="/",
        secure=secure,
        httponly=True,
        samesite="strict",
    )


def clear_auth_cookie(response, secure: bool) -> None:
    """Expire the auth cookie immediately (empty value, Max-Age=0).

    Attributes mirror set_auth_cookie() so the browser matches and replaces
    the existing cookie rather than storing a second one.
    """
    response.set_cookie(
        AUTH_COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        secure=secure,
        httponly=True,
        samesite="strict",
    )
