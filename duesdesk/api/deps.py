from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from duesdesk.db import get_db
from duesdesk.models.pharmacy import Pharmacy
from duesdesk.services.auth_dependencies import (
    is_privileged,
    require_roles,
    require_user_auth,
)
from duesdesk.services.pharmacies import pharmacies as pharmacies_service


def get_current_user(auth=Depends(require_user_auth)):
    """Get current authenticated user info.

    Returns a dict with user_id and roles.
    """
    return auth


def ensure_pharmacy_access(
    db: Session,
    pharmacy_id,
    current_user: dict,
    detail: str = "Not authorized to access this pharmacy",
) -> Pharmacy:
    """Allow privileged users and the pharmacy's owner; 403 for anyone else."""
    pharmacy = pharmacies_service.get(db, str(pharmacy_id))
    if is_privileged(current_user):
        return pharmacy
    if pharmacy.owner_id is None or str(pharmacy.owner_id) != current_user["user_id"]:
        raise HTTPException(status_code=403, detail=detail)
    return pharmacy


__all__ = [
    "ensure_pharmacy_access",
    "get_db",
    "get_current_user",
    "is_privileged",
    "require_roles",
    "require_user_auth",
]
