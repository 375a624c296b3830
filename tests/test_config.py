"""Unit tests for core/config.py -- signing-secret policy and overrides.

Settings is instantiated directly (not via get_settings()) so each test sees
only the environment it sets up with monkeypatch.
"""

import pytest
from pydantic import ValidationError

from core.config import Settings

_ACCESS = "a" * 32
_REFRESH = "b" * 32


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DEBUG", "JWT_SECRET", "JWT_REFRESH_SECRET", "ACCESS_TOKEN_EXPIRE_SECONDS", "MAX_REFRESH_TOKENS"):
        monkeypatch.delenv(name, raising=False)


def test_production_requires_secrets() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, debug=False)


def test_debug_generates_distinct_secrets() -> None:
    settings = Settings(_env_file=None, debug=True)
    assert len(settings.jwt_secret) >= 32
    assert len(settings.jwt_refresh_secret) >= 32
    assert settings.jwt_secret != settings.jwt_refresh_secret


def test_short_secret_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, jwt_secret="short", jwt_refresh_secret=_REFRESH)


def test_identical_secrets_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, jwt_secret=_ACCESS, jwt_refresh_secret=_ACCESS)


def test_defaults() -> None:
    settings = Settings(_env_file=None, jwt_secret=_ACCESS, jwt_refresh_secret=_REFRESH)
    assert settings.access_token_expire_seconds == 15 * 60
    assert settings.refresh_token_expire_seconds == 7 * 24 * 60 * 60
    assert settings.max_refresh_tokens == 20


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JWT_SECRET", _ACCESS)
    monkeypatch.setenv("JWT_REFRESH_SECRET", _REFRESH)
    monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_SECONDS", "60")
    monkeypatch.setenv("MAX_REFRESH_TOKENS", "0")
    settings = Settings(_env_file=None)
    assert settings.jwt_secret == _ACCESS
    assert settings.access_token_expire_seconds == 60
    assert settings.max_refresh_tokens == 0


def test_non_positive_expiry_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, jwt_secret=_ACCESS, jwt_refresh_secret=_REFRESH, access_token_expire_seconds=0)
