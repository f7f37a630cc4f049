"""Reading and maintaining assigned dues."""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from duesdesk.models.due import Due, DuePaymentStatus
from duesdesk.models.payment import Payment
from duesdesk.models.pharmacy import Pharmacy
from duesdesk.schemas.due import DueUpdate
from duesdesk.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_or_404,
    validate_enum,
)
from duesdesk.services.dues._common import _lock_due, _recalculate_due_totals
from duesdesk.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Dues(ListResponseMixin):
    @staticmethod
    def get(db: Session, due_id: str) -> Due:
        return get_or_404(db, Due, due_id, detail="Due not found")

    @staticmethod
    def list(
        db: Session,
        pharmacy_id: str | None = None,
        due_type_id: str | None = None,
        year: int | None = None,
        payment_status: str | None = None,
        owner_id: str | None = None,
        order_by: str = "due_date",
        order_dir: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ):
        query = db.query(Due)
        if pharmacy_id:
            query = query.filter(Due.pharmacy_id == coerce_uuid(pharmacy_id))
        if due_type_id:
            query = query.filter(Due.due_type_id == coerce_uuid(due_type_id))
        if year is not None:
            query = query.filter(Due.year == year)
        if owner_id:
            query = query.join(Pharmacy, Due.pharmacy_id == Pharmacy.id).filter(
                Pharmacy.owner_id == coerce_uuid(owner_id)
            )
        if payment_status:
            query = query.filter(
                Due.payment_status
                == validate_enum(payment_status, DuePaymentStatus, "payment_status")
            )
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "due_date": Due.due_date,
                "created_at": Due.created_at,
                "amount": Due.amount,
                "balance": Due.balance,
                "year": Due.year,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, due_id: str, payload: DueUpdate) -> Due:
        due = _lock_due(db, due_id)
        data = payload.model_dump(exclude_unset=True)
        if "due_date" in data and data["due_date"] is not None:
            if data["due_date"].year != due.year:
                raise HTTPException(
                    status_code=400,
                    detail="Due date must stay within the due's year",
                )
        for key, value in data.items():
            if value is None and key in {"title", "amount", "due_date"}:
                continue
            setattr(due, key, value)
        _recalculate_due_totals(due)
        db.commit()
        db.refresh(due)
        return due

    @staticmethod
    def delete(db: Session, due_id: str) -> None:
        due = get_or_404(db, Due, due_id, detail="Due not found")
        has_payments = (
            db.query(Payment.id).filter(Payment.due_id == due.id).first() is not None
        )
        if has_payments:
            raise HTTPException(
                status_code=400,
                detail={
                    "code": "due_has_payments",
                    "message": "Cannot delete a due that has payments",
                },
            )
        db.delete(due)
        db.commit()
        logger.info("Deleted due %s", due_id)
