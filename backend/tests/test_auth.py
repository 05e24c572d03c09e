import time

import pytest
from fastapi import HTTPException
from jose import jwt
from starlette.requests import Request

from utils import auth_utils
from utils.auth_utils import get_current_user, get_user_identifier

SECRET = "test-secret"


def _request(authorization=None):
    headers = [(b"authorization", authorization.encode())] if authorization else []
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


@pytest.fixture(autouse=True)
def configured_secret(monkeypatch):
    monkeypatch.setattr(auth_utils, "JWT_SECRET", SECRET)
    monkeypatch.setattr(auth_utils, "JWT_AUDIENCE", None)


def test_valid_token_returns_claims():
    token = jwt.encode({"sub": "42", "email": "buyer@example.com", "exp": int(time.time()) + 60}, SECRET, algorithm="HS256")
    claims = get_current_user(_request(f"Bearer {token}"))
    assert claims["email"] == "buyer@example.com"
    assert get_user_identifier(claims) == "buyer@example.com"


def test_missing_header_is_401():
    with pytest.raises(HTTPException) as excinfo:
        get_current_user(_request())
    assert excinfo.value.status_code == 401


def test_malformed_header_is_401():
    with pytest.raises(HTTPException) as excinfo:
        get_current_user(_request("Token abc"))
    assert excinfo.value.status_code == 401


def test_expired_token_is_401():
    token = jwt.encode({"sub": "42", "exp": int(time.time()) - 10}, SECRET, algorithm="HS256")
    with pytest.raises(HTTPException) as excinfo:
        get_current_user(_request(f"Bearer {token}"))
    assert excinfo.value.status_code == 401
    assert "expired" in excinfo.value.detail


def test_wrong_signature_is_401():
    token = jwt.encode({"sub": "42"}, "another-secret", algorithm="HS256")
    with pytest.raises(HTTPException) as excinfo:
        get_current_user(_request(f"Bearer {token}"))
    assert excinfo.value.status_code == 401


def test_unconfigured_secret_is_500(monkeypatch):
    monkeypatch.setattr(auth_utils, "JWT_SECRET", "")
    with pytest.raises(HTTPException) as excinfo:
        get_current_user(_request("Bearer whatever"))
    assert excinfo.value.status_code == 500


@pytest.mark.parametrize(
    "claims, expected",
    [
        ({"email": "a@example.com", "username": "a"}, "a@example.com"),
        ({"username": "clerk"}, "clerk"),
        ({"sub": "17"}, "17"),
        ({}, "system"),
        ({"role": "admin"}, "unknown"),
    ],
)
def test_user_identifier(claims, expected):
    assert get_user_identifier(claims) == expected
