from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from duesdesk.api.deps import (
    ensure_pharmacy_access,
    get_current_user,
    get_db,
    is_privileged,
    require_roles,
)
from duesdesk.schemas.common import ListResponse
from duesdesk.schemas.due import (
    ClearanceCertificate,
    DueAnalytics,
    DueAssignIndividualResponse,
    DueAssignRequest,
    DueAssignResponse,
    DueBulkAssignRequest,
    DueBulkAssignResponse,
    DueEnvelope,
    DueIndividualAssign,
    DueInconsistency,
    DuePenaltyCreate,
    DueRead,
    DueStatusRepairResponse,
    DueUpdate,
    PharmacyDueAnalytics,
)
from duesdesk.schemas.payment import EmptyEnvelope, PharmacyPaymentHistory
from duesdesk.services import dues as dues_service
from duesdesk.services.response import list_response

router = APIRouter()


# --- Assignment ---


@router.post(
    "/dues/assign",
    response_model=DueAssignResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["dues"],
    dependencies=[Depends(require_roles())],
)
def assign_dues(
    payload: DueAssignRequest,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    return dues_service.assignments.assign(db, payload, current_user["user_id"])


@router.post(
    "/dues/bulk-assign",
    response_model=DueBulkAssignResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["dues"],
    dependencies=[Depends(require_roles())],
)
def bulk_assign_dues(
    payload: DueBulkAssignRequest,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    return dues_service.assignments.bulk_assign(db, payload, current_user["user_id"])


@router.post(
    "/dues/assign/{pharmacy_id}",
    response_model=DueAssignIndividualResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["dues"],
    dependencies=[Depends(require_roles())],
)
def assign_due_to_pharmacy(
    pharmacy_id: str,
    payload: DueIndividualAssign,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    due = dues_service.assignments.assign_individual(
        db, pharmacy_id, payload, current_user["user_id"]
    )
    message = "Due assigned successfully"
    if payload.is_recurring and payload.recurring_frequency:
        message = "Due assigned successfully with recurring instances"
    return {"data": due, "message": message}


# --- Maintenance ---


@router.post(
    "/dues/fix-payment-status",
    response_model=DueStatusRepairResponse,
    tags=["dues"],
    dependencies=[Depends(require_roles())],
)
def fix_payment_statuses(db: Session = Depends(get_db)):
    result = dues_service.reviews.fix_payment_statuses(db)
    return {"message": "Payment statuses recalculated", **result}


@router.get(
    "/dues/inconsistencies",
    response_model=list[DueInconsistency],
    tags=["dues"],
    dependencies=[Depends(require_roles())],
)
def list_due_inconsistencies(db: Session = Depends(get_db)):
    return dues_service.reviews.find_inconsistencies(db)


# --- Reporting ---


@router.get(
    "/dues/overdue",
    response_model=ListResponse[DueRead],
    tags=["dues"],
    dependencies=[Depends(require_roles())],
)
def list_overdue_dues(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = dues_service.reporting.overdue_dues(db, limit=limit, offset=offset)
    return list_response(items, limit, offset)


@router.get(
    "/dues/analytics/all",
    response_model=DueAnalytics,
    tags=["dues"],
    dependencies=[Depends(require_roles())],
)
def due_analytics(
    year: int | None = Query(default=None, ge=1900, le=9999),
    db: Session = Depends(get_db),
):
    return dues_service.reporting.due_analytics(db, year)


@router.get(
    "/dues/analytics/pharmacy/{pharmacy_id}",
    response_model=PharmacyDueAnalytics,
    tags=["dues"],
)
def pharmacy_due_analytics(
    pharmacy_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    ensure_pharmacy_access(db, pharmacy_id, current_user)
    return dues_service.reporting.pharmacy_analytics(db, pharmacy_id)


@router.get(
    "/dues/pharmacy/{pharmacy_id}/history",
    response_model=PharmacyPaymentHistory,
    tags=["dues"],
)
def pharmacy_payment_history(
    pharmacy_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    ensure_pharmacy_access(db, pharmacy_id, current_user)
    return dues_service.reporting.pharmacy_payment_history(db, pharmacy_id)


# --- Records ---


@router.get("/dues", response_model=ListResponse[DueRead], tags=["dues"])
def list_dues(
    pharmacy_id: str | None = None,
    due_type_id: str | None = None,
    year: int | None = None,
    payment_status: str | None = None,
    order_by: str = Query(default="due_date"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    if pharmacy_id:
        ensure_pharmacy_access(db, pharmacy_id, current_user)
    owner_id = None if is_privileged(current_user) else current_user["user_id"]
    return dues_service.dues.list_response(
        db,
        pharmacy_id=pharmacy_id,
        due_type_id=due_type_id,
        year=year,
        payment_status=payment_status,
        owner_id=owner_id,
        order_by=order_by,
        order_dir=order_dir,
        limit=limit,
        offset=offset,
    )


@router.get("/dues/{due_id}", response_model=DueRead, tags=["dues"])
def get_due(
    due_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    due = dues_service.dues.get(db, due_id)
    ensure_pharmacy_access(db, due.pharmacy_id, current_user)
    return due


@router.patch(
    "/dues/{due_id}",
    response_model=DueRead,
    tags=["dues"],
    dependencies=[Depends(require_roles())],
)
def update_due(due_id: str, payload: DueUpdate, db: Session = Depends(get_db)):
    return dues_service.dues.update(db, due_id, payload)


@router.delete(
    "/dues/{due_id}",
    response_model=EmptyEnvelope,
    tags=["dues"],
    dependencies=[Depends(require_roles())],
)
def delete_due(due_id: str, db: Session = Depends(get_db)):
    dues_service.dues.delete(db, due_id)
    return {"data": {}}


@router.put(
    "/dues/{due_id}/pay",
    response_model=DueEnvelope,
    tags=["dues"],
    dependencies=[Depends(require_roles())],
)
@router.put(
    "/dues/{due_id}/mark-paid",
    response_model=DueEnvelope,
    tags=["dues"],
    dependencies=[Depends(require_roles())],
)
def mark_due_paid(due_id: str, db: Session = Depends(get_db)):
    return {"data": dues_service.reviews.mark_paid(db, due_id)}


@router.post(
    "/dues/{due_id}/penalty",
    response_model=DueEnvelope,
    status_code=status.HTTP_201_CREATED,
    tags=["dues"],
    dependencies=[Depends(require_roles())],
)
def add_due_penalty(
    due_id: str,
    payload: DuePenaltyCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    due = dues_service.reviews.add_penalty(db, due_id, payload, current_user["user_id"])
    return {"data": due}


@router.get(
    "/dues/{due_id}/certificate",
    response_model=ClearanceCertificate,
    tags=["dues"],
)
def get_clearance_certificate(
    due_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    due = dues_service.dues.get(db, due_id)
    ensure_pharmacy_access(db, due.pharmacy_id, current_user)
    return dues_service.reporting.clearance_certificate(db, due_id)
