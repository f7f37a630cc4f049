from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from duesdesk.api.deps import get_db, require_roles
from duesdesk.schemas.common import ListResponse
from duesdesk.schemas.pharmacy import PharmacyCreate, PharmacyRead
from duesdesk.services.pharmacies import pharmacies as pharmacies_service

router = APIRouter()


@router.post(
    "/pharmacies",
    response_model=PharmacyRead,
    status_code=status.HTTP_201_CREATED,
    tags=["pharmacies"],
    dependencies=[Depends(require_roles())],
)
def create_pharmacy(payload: PharmacyCreate, db: Session = Depends(get_db)):
    return pharmacies_service.create(db, payload)


@router.get("/pharmacies/{pharmacy_id}", response_model=PharmacyRead, tags=["pharmacies"])
def get_pharmacy(pharmacy_id: str, db: Session = Depends(get_db)):
    return pharmacies_service.get(db, pharmacy_id)


@router.get("/pharmacies", response_model=ListResponse[PharmacyRead], tags=["pharmacies"])
def list_pharmacies(
    registration_status: str | None = None,
    owner_id: str | None = None,
    order_by: str = Query(default="name"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return pharmacies_service.list_response(
        db, registration_status, owner_id, order_by, order_dir, limit, offset
    )
