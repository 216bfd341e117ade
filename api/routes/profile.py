"""
api/routes/profile.py -- The authenticated user's own profile.

Routes:
  GET /api/profile  -- current user's profile (requires auth)
  PUT /api/profile  -- update nickname (requires auth)

Avatar uploads go through the image store, which lives outside this service;
only the stored avatar key is echoed back here.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import Envelope, ProfileData, ProfileUpdateRequest
from auth.dependencies import get_current_user
from auth.models import TokenClaims, User
from auth.store import UserStore
from core.errors import AppError, ErrorCode
from core.validation import validate_nickname

router = APIRouter()


def _load_user(user_store: UserStore, user_id: int) -> User:
    user = user_store.get_by_id(user_id)
    if user is None:
        # Token outlived its account.
        raise AppError(ErrorCode.USER_NOT_FOUND, http_status=404)
    return user


@router.get("/api/profile")
def get_profile(request: Request, current: TokenClaims = Depends(get_current_user)) -> Envelope:
    user = _load_user(request.app.state.user_store, current.user_id)
    return Envelope(data=ProfileData.from_user(user))


@router.put("/api/profile")
def update_profile(
    request: Request,
    body: ProfileUpdateRequest,
    current: TokenClaims = Depends(get_current_user),
) -> Envelope:
    """Update mutable profile fields. Omitted fields are left as they are."""
    user_store: UserStore = request.app.state.user_store
    _load_user(user_store, current.user_id)

    if body.nickname is not None:
        validate_nickname(body.nickname)
        user_store.update_user(current.user_id, nickname=body.nickname)

    user = _load_user(user_store, current.user_id)
    return Envelope(message="更新成功", data=ProfileData.from_user(user))
