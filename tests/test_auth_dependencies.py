import uuid
from datetime import UTC, datetime, timedelta

import pytest
from fastapi import HTTPException
from jose import jwt

from duesdesk.config import settings
from duesdesk.services import auth_dependencies as auth_dep
from duesdesk.services.auth_dependencies import is_privileged, require_roles, require_user_auth


def _make_access_token(user_id: str, roles: list[str] | None = None, typ: str = "access", expires_in: int = 15):
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "typ": typ,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_in)).timestamp()),
    }
    if roles:
        payload["roles"] = roles
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def test_require_user_auth_accepts_valid_token():
    user_id = str(uuid.uuid4())
    token = _make_access_token(user_id, roles=["treasurer"])
    auth = require_user_auth(authorization=f"Bearer {token}")
    assert auth == {"user_id": user_id, "roles": ["treasurer"]}


def test_require_user_auth_requires_header():
    with pytest.raises(HTTPException) as exc:
        require_user_auth(authorization=None)
    assert exc.value.status_code == 401


def test_require_user_auth_rejects_non_bearer_scheme():
    token = _make_access_token(str(uuid.uuid4()))
    with pytest.raises(HTTPException) as exc:
        require_user_auth(authorization=f"Basic {token}")
    assert exc.value.status_code == 401


def test_require_user_auth_rejects_expired_token():
    token = _make_access_token(str(uuid.uuid4()), expires_in=-1)
    with pytest.raises(HTTPException) as exc:
        require_user_auth(authorization=f"Bearer {token}")
    assert exc.value.status_code == 401


def test_require_user_auth_rejects_refresh_token():
    token = _make_access_token(str(uuid.uuid4()), typ="refresh")
    with pytest.raises(HTTPException) as exc:
        require_user_auth(authorization=f"Bearer {token}")
    assert exc.value.status_code == 401
    assert exc.value.detail == "Invalid token type"


def test_require_user_auth_rejects_wrong_secret():
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "typ": "access"}, "other-secret", algorithm="HS256"
    )
    with pytest.raises(HTTPException) as exc:
        require_user_auth(authorization=f"Bearer {token}")
    assert exc.value.status_code == 401


def test_missing_secret_is_server_error(monkeypatch):
    monkeypatch.setattr(auth_dep, "settings", settings.model_copy(update={"jwt_secret": None}))
    with pytest.raises(HTTPException) as exc:
        auth_dep.decode_access_token("token")
    assert exc.value.status_code == 500


def test_is_privileged():
    assert is_privileged({"roles": ["admin"]}) is True
    assert is_privileged({"roles": ["financial_secretary"]}) is True
    assert is_privileged({"roles": ["member"]}) is False
    assert is_privileged({}) is False


def test_require_roles_defaults_to_privileged_roles():
    dependency = require_roles()
    auth = {"user_id": "u", "roles": ["superadmin"]}
    assert dependency(auth=auth) is auth
    with pytest.raises(HTTPException) as exc:
        dependency(auth={"user_id": "u", "roles": ["member"]})
    assert exc.value.status_code == 403


def test_require_roles_with_explicit_roles():
    dependency = require_roles("auditor")
    assert dependency(auth={"user_id": "u", "roles": ["auditor"]})
    with pytest.raises(HTTPException):
        dependency(auth={"user_id": "u", "roles": ["admin"]})


@pytest.mark.parametrize("subject", ["admin", "", None])
def test_require_user_auth_rejects_non_uuid_subject(subject):
    payload = {"typ": "access", "roles": ["admin"]}
    if subject is not None:
        payload["sub"] = subject
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    with pytest.raises(HTTPException) as exc:
        require_user_auth(authorization=f"Bearer {token}")
    assert exc.value.status_code == 401
    assert exc.value.detail == "Invalid token subject"
