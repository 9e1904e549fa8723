from datetime import timedelta

import pytest
from fastapi import HTTPException

from task_api.core.config import _split, get_settings
from task_api.core.security import (
    create_access_token, decode_token, get_password_hash, issue_user_token, verify_password
)
from task_api.models.user import User


def test_split_ignores_blanks():
    assert _split(" a, b ,,c ") == ["a", "b", "c"]


def test_settings_from_environment():
    settings = get_settings()

    assert settings.database_url == "sqlite://"
    assert settings.bcrypt_rounds == 4
    assert settings.events_enabled is False
    assert settings.api_prefix == "/api/v1"


def test_cookie_settings_follow_environment(monkeypatch):
    settings = get_settings()
    monkeypatch.delenv("COOKIE_SECURE", raising=False)
    monkeypatch.delenv("COOKIE_SAMESITE", raising=False)

    assert settings.is_production is False
    assert settings.cookie_secure is False
    assert settings.cookie_samesite == "lax"

    monkeypatch.setenv("COOKIE_SECURE", "true")
    monkeypatch.setenv("COOKIE_SAMESITE", "Strict")

    assert settings.cookie_secure is True
    assert settings.cookie_samesite == "strict"


def test_password_hashing():
    hashed = get_password_hash("Pa$$word20")

    assert hashed != "Pa$$word20"
    assert verify_password("Pa$$word20", hashed)
    assert not verify_password("pa$$word20", hashed)


def test_verify_password_without_hash():
    assert verify_password("anything", None) is False


def test_token_claims():
    user = User(id=7, name="Tess", email="tess@example.com", role="manager")

    token, csrf_token = issue_user_token(user)
    claims = decode_token(token)

    assert claims["sub"] == "7"
    assert claims["name"] == "Tess"
    assert claims["role"] == "manager"
    assert claims["csrf"] == csrf_token
    assert "exp" in claims


def test_csrf_tokens_are_unique():
    user = User(id=1, name="Tess", email="tess@example.com", role="user")

    assert issue_user_token(user)[1] != issue_user_token(user)[1]


def test_expired_token_rejected():
    token = create_access_token({"sub": "1"}, expires_delta=timedelta(minutes=-1))

    with pytest.raises(HTTPException) as exc_info:
        decode_token(token)

    assert exc_info.value.status_code == 401


def test_tampered_token_rejected():
    token = create_access_token({"sub": "1"})

    with pytest.raises(HTTPException):
        decode_token(token[:-2] + ("AA" if not token.endswith("AA") else "BB"))
