"""
core/validation.py -- Field rules for user-supplied account data.

Each validator raises AppError with the field-specific code so the client can
point at the offending input. Registration and profile updates share these;
they are the only place the rules are written down.
"""

from __future__ import annotations

import re

from core.errors import AppError, ErrorCode

# 3-20 chars, ASCII letters, digits and underscore. Digest headers quote the
# username, so anything that could break the k="v" grammar is excluded here.
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]{3,20}$")
PASSWORD_MIN_LENGTH = 6
NICKNAME_MAX_LENGTH = 50


def validate_username(username: str) -> None:
    if not USERNAME_PATTERN.match(username):
        raise AppError(ErrorCode.USER_INVALID_USERNAME)


def validate_password(password: str) -> None:
    if len(password) < PASSWORD_MIN_LENGTH:
        raise AppError(ErrorCode.USER_INVALID_PASSWORD)


def validate_nickname(nickname: str) -> None:
    if not 1 <= len(nickname) <= NICKNAME_MAX_LENGTH:
        raise AppError(ErrorCode.USER_INVALID_NICKNAME)
