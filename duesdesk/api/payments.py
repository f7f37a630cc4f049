from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from duesdesk.api.deps import ensure_pharmacy_access, get_current_user, get_db, require_roles
from duesdesk.models.payment import PaymentMethod
from duesdesk.schemas.common import ListResponse
from duesdesk.schemas.payment import (
    EmptyEnvelope,
    PaymentEnvelope,
    PaymentRead,
    PaymentReject,
    PaymentSubmit,
    PaymentWithDueEnvelope,
)
from duesdesk.services import dues as dues_service
from duesdesk.services.response import list_response

router = APIRouter()


@router.post(
    "/payments/submit",
    response_model=PaymentEnvelope,
    status_code=status.HTTP_201_CREATED,
    tags=["payments"],
)
def submit_payment(
    due_id: UUID = Form(...),
    pharmacy_id: UUID = Form(...),
    amount: Decimal = Form(...),
    payment_method: PaymentMethod = Form(...),
    payment_reference: str | None = Form(default=None, max_length=120),
    receipt: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    ensure_pharmacy_access(
        db,
        pharmacy_id,
        current_user,
        detail="Not authorized to submit payments for this pharmacy",
    )
    payload = PaymentSubmit(
        due_id=due_id,
        pharmacy_id=pharmacy_id,
        amount=amount,
        payment_method=payment_method,
        payment_reference=payment_reference,
    )
    payment = dues_service.payments.submit(
        db, payload, receipt, submitted_by=current_user["user_id"]
    )
    return {"data": payment}


@router.get(
    "/payments/pending",
    response_model=ListResponse[PaymentRead],
    tags=["payments"],
    dependencies=[Depends(require_roles())],
)
def list_pending_payments(
    pharmacy_id: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = dues_service.reporting.pending_payments(
        db, pharmacy_id=pharmacy_id, limit=limit, offset=offset
    )
    return list_response(items, limit, offset)


@router.get(
    "/payments/due/{due_id}",
    response_model=ListResponse[PaymentRead],
    tags=["payments"],
)
def list_due_payments(
    due_id: str,
    order_by: str = Query(default="submitted_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    due = dues_service.dues.get(db, due_id)
    ensure_pharmacy_access(db, due.pharmacy_id, current_user)
    return dues_service.payments.list_response(
        db,
        due_id=due_id,
        order_by=order_by,
        order_dir=order_dir,
        limit=limit,
        offset=offset,
    )


@router.get("/payments/{payment_id}", response_model=PaymentWithDueEnvelope, tags=["payments"])
def get_payment(
    payment_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    payment = dues_service.payments.get(db, payment_id)
    ensure_pharmacy_access(db, payment.pharmacy_id, current_user)
    return {"data": payment}


@router.put(
    "/payments/{payment_id}/approve",
    response_model=PaymentWithDueEnvelope,
    tags=["payments"],
    dependencies=[Depends(require_roles())],
)
def approve_payment(
    payment_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    payment = dues_service.reviews.approve(db, payment_id, current_user["user_id"])
    return {"data": payment}


@router.put(
    "/payments/{payment_id}/reject",
    response_model=PaymentEnvelope,
    tags=["payments"],
    dependencies=[Depends(require_roles())],
)
def reject_payment(
    payment_id: str,
    payload: PaymentReject,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    payment = dues_service.reviews.reject(
        db, payment_id, payload.rejection_reason, current_user["user_id"]
    )
    return {"data": payment}


@router.delete(
    "/payments/{payment_id}",
    response_model=EmptyEnvelope,
    tags=["payments"],
    dependencies=[Depends(require_roles())],
)
def delete_payment(payment_id: str, db: Session = Depends(get_db)):
    dues_service.reviews.delete(db, payment_id)
    return {"data": {}}
