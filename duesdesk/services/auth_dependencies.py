"""Bearer-token authentication dependencies for the API routers."""

import uuid
from typing import Any, cast

from fastapi import Depends, Header, HTTPException, Request
from jose import JWTError, jwt

from duesdesk.config import settings

PRIVILEGED_ROLES = frozenset({"admin", "superadmin", "treasurer", "financial_secretary"})


def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip()
    return None


def _jwt_secret() -> str:
    if not settings.jwt_secret:
        raise HTTPException(status_code=500, detail="JWT secret not configured")
    return settings.jwt_secret


def decode_access_token(token: str) -> dict:
    try:
        payload = cast(
            dict[Any, Any],
            jwt.decode(token, _jwt_secret(), algorithms=[settings.jwt_algorithm]),
        )
    except JWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc
    if payload.get("typ") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type")
    return payload


def require_user_auth(
    authorization: str | None = Header(default=None),
    request: Request = None,
):
    token = _extract_bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    payload = decode_access_token(token)
    try:
        user_id = str(uuid.UUID(str(payload.get("sub"))))
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid token subject") from exc
    roles_value = payload.get("roles")
    roles = [str(role) for role in roles_value] if isinstance(roles_value, list) else []
    if request is not None:
        request.state.actor_id = user_id
    return {"user_id": user_id, "roles": roles}


def is_privileged(auth: dict) -> bool:
    return bool(PRIVILEGED_ROLES.intersection(auth.get("roles") or []))


def require_roles(*role_names: str):
    """Dependency factory allowing any of role_names (privileged roles by default)."""
    allowed = frozenset(role_names) if role_names else PRIVILEGED_ROLES

    def _require_roles(auth=Depends(require_user_auth)):
        if allowed.intersection(auth.get("roles") or []):
            return auth
        raise HTTPException(status_code=403, detail="Forbidden")

    return _require_roles
