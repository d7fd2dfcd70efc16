"""Unit tests for core/config.py -- Settings defaults and the JWT_SECRET policy.

Settings() also reads the process environment; conftest sets DEBUG=true, so
production-mode tests pass debug=False explicitly.
"""

import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings

GOOD_SECRET = "x" * 32


@pytest.fixture(autouse=True)
def _no_secret_env(monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    monkeypatch.delenv("SESSION_EXPIRES_IN_DAYS", raising=False)
    monkeypatch.delenv("JWT_EXPIRES_IN_SECONDS", raising=False)


def test_defaults():
    settings = Settings(jwt_secret=GOOD_SECRET)
    assert settings.session_expires_in_days == 7
    assert settings.jwt_expires_in_seconds == 60
    assert settings.secure_cookies is False


def test_production_requires_secret():
    with pytest.raises(ValidationError, match="JWT_SECRET is required"):
        Settings(debug=False)


def test_debug_generates_secret():
    settings = Settings(debug=True)
    assert len(settings.jwt_secret) >= 32


def test_short_secret_rejected():
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(debug=True, jwt_secret="too-short")


def test_session_ttl_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(jwt_secret=GOOD_SECRET, session_expires_in_days=0)


def test_values_read_from_environment(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", GOOD_SECRET)
    monkeypatch.setenv("SESSION_EXPIRES_IN_DAYS", "14")
    monkeypatch.setenv("JWT_EXPIRES_IN_SECONDS", "900")
    settings = Settings()
    assert settings.jwt_secret == GOOD_SECRET
    assert settings.session_expires_in_days == 14
    assert settings.jwt_expires_in_seconds == 900


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
