"""
API request and response models for Loverse REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Every response uses the same envelope: {"code": 0, "message": ..., "data": ...}
on success, {"code": <ErrorCode>, "message": ...} on failure. Field names are
camelCase on the wire because the browser client reads them directly.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from auth.models import User

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/register.

    All fields are optional at the schema level so that a missing field is
    reported as MISSING_REQUIRED_FIELD (1602) by the route rather than as a
    generic validation failure. Format rules live in core.validation.
    Passwords are taken verbatim: no whitespace stripping.
    """

    username: Optional[str] = None
    password: Optional[str] = None
    nickname: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    """Request body for PUT /api/profile. Absent fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    nickname: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class Envelope(BaseModel):
    """Success envelope shared by every endpoint."""

    code: int = 0
    message: str = "success"
    data: Any = None


class ErrorResponse(BaseModel):
    """Error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    code: int
    message: str


class IdentityData(BaseModel):
    """Payload of a successful login."""

    model_config = ConfigDict(frozen=True)

    userId: int
    username: str


class RegisteredUserData(BaseModel):
    model_config = ConfigDict(frozen=True)

    userId: int
    username: str
    nickname: str


class ProfileData(BaseModel):
    """A user's own profile as returned by GET/PUT /api/profile."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    nickname: str
    avatarKey: Optional[str] = None
    createdAt: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "ProfileData":
        return cls(
            id=user.id,
            username=user.username,
            nickname=user.nickname,
            avatarKey=user.avatar_key,
            createdAt=user.created_at,
        )


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
