from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from duesdesk.api.deps import get_current_user, get_db, require_roles
from duesdesk.schemas.common import ListResponse
from duesdesk.schemas.due import DueTypeCreate, DueTypeRead, DueTypeUpdate
from duesdesk.schemas.payment import EmptyEnvelope
from duesdesk.services import dues as dues_service

router = APIRouter()


@router.post(
    "/due-types",
    response_model=DueTypeRead,
    status_code=status.HTTP_201_CREATED,
    tags=["due-types"],
    dependencies=[Depends(require_roles())],
)
def create_due_type(
    payload: DueTypeCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    return dues_service.due_types.create(db, payload, current_user["user_id"])


@router.get("/due-types/{due_type_id}", response_model=DueTypeRead, tags=["due-types"])
def get_due_type(due_type_id: str, db: Session = Depends(get_db)):
    return dues_service.due_types.get(db, due_type_id)


@router.put(
    "/due-types/{due_type_id}",
    response_model=DueTypeRead,
    tags=["due-types"],
    dependencies=[Depends(require_roles())],
)
def update_due_type(due_type_id: str, payload: DueTypeUpdate, db: Session = Depends(get_db)):
    return dues_service.due_types.update(db, due_type_id, payload)


@router.delete(
    "/due-types/{due_type_id}",
    response_model=EmptyEnvelope,
    tags=["due-types"],
    dependencies=[Depends(require_roles())],
)
def delete_due_type(due_type_id: str, db: Session = Depends(get_db)):
    dues_service.due_types.delete(db, due_type_id)
    return {"data": {}}


@router.get("/due-types", response_model=ListResponse[DueTypeRead], tags=["due-types"])
def list_due_types(
    is_active: bool | None = None,
    order_by: str = Query(default="name"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return dues_service.due_types.list_response(
        db, is_active, order_by, order_dir, limit, offset
    )
