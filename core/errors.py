"""
core/errors.py -- Application error codes and the AppError exception.

Every error the API returns uses the same envelope: {"code": int, "message": str}.
Codes are grouped by area in blocks of 100 (auth 1000-1099, users 1100-1199,
validation 1600-1699, server 1700-1799). Clients branch on the code, never on
the message text.

Route handlers and validators raise AppError; the handler registered in
api/main.py renders it. Nothing below api/ builds HTTP responses by hand.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    # Authentication
    AUTH_REQUIRED = 1000
    AUTH_INVALID_CREDENTIALS = 1001
    AUTH_TOKEN_EXPIRED = 1002
    AUTH_TOKEN_INVALID = 1003
    AUTH_UNAUTHORIZED = 1004

    # Users
    USER_NOT_FOUND = 1100
    USER_ALREADY_EXISTS = 1101
    USER_INVALID_USERNAME = 1102
    USER_INVALID_PASSWORD = 1103
    USER_INVALID_NICKNAME = 1104

    # Validation
    VALIDATION_FAILED = 1600
    INVALID_INPUT = 1601
    MISSING_REQUIRED_FIELD = 1602

    # Server
    INTERNAL_ERROR = 1700
    DATABASE_ERROR = 1701
    STORAGE_ERROR = 1702


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.AUTH_REQUIRED: "需要登录",
    ErrorCode.AUTH_INVALID_CREDENTIALS: "用户名或密码错误",
    ErrorCode.AUTH_TOKEN_EXPIRED: "登录已过期，请重新登录",
    ErrorCode.AUTH_TOKEN_INVALID: "登录凭证无效",
    ErrorCode.AUTH_UNAUTHORIZED: "无权限访问",
    ErrorCode.USER_NOT_FOUND: "用户不存在",
    ErrorCode.USER_ALREADY_EXISTS: "用户名已被使用",
    ErrorCode.USER_INVALID_USERNAME: "用户名格式不正确（3-20个字符，仅限字母数字下划线）",
    ErrorCode.USER_INVALID_PASSWORD: "密码格式不正确（至少6个字符）",
    ErrorCode.USER_INVALID_NICKNAME: "昵称格式不正确（1-50个字符）",
    ErrorCode.VALIDATION_FAILED: "数据验证失败",
    ErrorCode.INVALID_INPUT: "输入数据不正确",
    ErrorCode.MISSING_REQUIRED_FIELD: "缺少必填字段",
    ErrorCode.INTERNAL_ERROR: "服务器内部错误",
    ErrorCode.DATABASE_ERROR: "数据库错误",
    ErrorCode.STORAGE_ERROR: "存储错误",
}

_UNKNOWN_MESSAGE = "未知错误"


def message_for(code: ErrorCode) -> str:
    return ERROR_MESSAGES.get(code, _UNKNOWN_MESSAGE)


class AppError(Exception):
    """An error with a stable client-facing code and HTTP status.

    The message defaults to the canonical text for the code. Pass an explicit
    message only when the canonical one is misleading for the call site.
    """

    def __init__(self, code: ErrorCode, http_status: int = 400, message: str | None = None) -> None:
        self.code = code
        self.http_status = http_status
        self.message = message or message_for(code)
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": int(self.code), "message": self.message}
