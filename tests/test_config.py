"""
tests/test_config.py -- Settings validation rules.

Coverage:
  - production mode refuses to start without SECRET_KEY
  - debug mode generates a key
  - short keys are rejected in both modes
  - auth defaults match the cookie/token contract
"""

from __future__ import annotations

import pytest

from core.config import Settings


def test_production_requires_secret_key() -> None:
    with pytest.raises(ValueError, match="SECRET_KEY is required"):
        Settings(debug=False, secret_key="")


def test_debug_generates_secret_key() -> None:
    settings = Settings(debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_short_secret_key_rejected() -> None:
    with pytest.raises(ValueError, match="at least 32"):
        Settings(debug=True, secret_key="too-short")


def test_non_positive_ttl_rejected() -> None:
    with pytest.raises(ValueError, match="TOKEN_EXPIRE_SECONDS"):
        Settings(debug=True, secret_key="x" * 32, token_expire_seconds=0)


def test_auth_defaults() -> None:
    settings = Settings(debug=True, secret_key="x" * 32)
    assert settings.token_expire_seconds == 3600
    assert settings.digest_realm == "Loverse"
    assert settings.digest_nonce_tracking is False
    assert settings.strict_sessions is False
    assert settings.secure_cookies is False


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SECRET_KEY", "e" * 40)
    monkeypatch.setenv("SECURE_COOKIES", "true")
    monkeypatch.setenv("STRICT_SESSIONS", "1")
    settings = Settings()
    assert settings.secret_key == "e" * 40
    assert settings.secure_cookies is True
    assert settings.strict_sessions is True
