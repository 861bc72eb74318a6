"""Session resolution from JWTs and the X-User-Id header."""
from datetime import datetime, timedelta, timezone

import jwt

from chatgate.core.config import Settings, settings
from chatgate.core.session import decode_session_token


def _token(sub, secret=None, expires_in=timedelta(hours=1), **claims):
    payload = {"sub": sub, "exp": datetime.now(timezone.utc) + expires_in, **claims}
    return jwt.encode(payload, secret or settings.SESSION_SECRET, algorithm=settings.SESSION_ALGORITHM)


def test_valid_bearer_token(client, make_user):
    make_user("jwt-user")
    resp = client.get("/api/usage", headers={"Authorization": f"Bearer {_token('jwt-user')}"})
    assert resp.status_code == 200
    assert resp.json()["user_id"] == "jwt-user"


def test_session_cookie(client, make_user):
    make_user("cookie-user")
    client.cookies.set(settings.SESSION_COOKIE_NAME, _token("cookie-user"))
    resp = client.get("/api/usage")
    assert resp.status_code == 200


def test_expired_or_foreign_tokens_are_rejected(client, make_user):
    make_user("jwt-user")
    expired = _token("jwt-user", expires_in=timedelta(seconds=-10))
    forged = _token("jwt-user", secret="not-the-secret-not-the-secret-not-the-secret")

    for token in (expired, forged, "garbage"):
        resp = client.get("/api/usage", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401


def test_bearer_token_takes_precedence_over_header(client, make_user):
    make_user("jwt-user")
    resp = client.get(
        "/api/usage",
        headers={"Authorization": "Bearer garbage", "X-User-Id": "jwt-user"},
    )
    assert resp.status_code == 401


def test_admin_flag_comes_from_the_user_record(client, make_user):
    make_user("pretender")
    token = _token("pretender", is_admin=True)
    resp = client.get("/api/admin/users", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 403


def test_header_auth_can_be_disabled(client, make_user, monkeypatch):
    make_user("header-user")
    monkeypatch.setattr(settings, "HEADER_AUTH_ENABLED", False)
    resp = client.get("/api/usage", headers={"X-User-Id": "header-user"})
    assert resp.status_code == 401


def test_decode_without_secret(monkeypatch):
    token = _token("anyone")
    monkeypatch.setattr(settings, "SESSION_SECRET", None)
    assert decode_session_token(token) is None


def test_token_without_subject():
    token = jwt.encode({"exp": datetime.now(timezone.utc) + timedelta(hours=1)}, settings.SESSION_SECRET, algorithm="HS256")
    assert decode_session_token(token) is None


def test_header_auth_is_off_unless_configured(monkeypatch):
    monkeypatch.delenv("HEADER_AUTH_ENABLED", raising=False)
    assert Settings(_env_file=None).HEADER_AUTH_ENABLED is False
