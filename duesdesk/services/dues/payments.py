"""Payment submissions against dues."""

import logging
from datetime import UTC, datetime

from fastapi import HTTPException, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from duesdesk.models.due import Due
from duesdesk.models.payment import Payment, PaymentApprovalStatus, PaymentMethod
from duesdesk.schemas.payment import PaymentSubmit
from duesdesk.services import receipt_storage
from duesdesk.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_or_404,
    round_money,
    validate_enum,
)
from duesdesk.services.object_storage import ObjectStorageError, StorageService
from duesdesk.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class PaymentSubmissions(ListResponseMixin):
    @staticmethod
    def submit(
        db: Session,
        payload: PaymentSubmit,
        receipt: UploadFile | None,
        submitted_by=None,
        storage: StorageService | None = None,
    ) -> Payment:
        """Validate a payment attempt, store its receipt and record it as pending.

        The due itself is not touched; amounts are credited on approval.
        """
        due = get_or_404(db, Due, payload.due_id, detail="Due not found")
        if due.pharmacy_id != payload.pharmacy_id:
            raise HTTPException(status_code=400, detail="Due does not belong to this pharmacy")
        amount = round_money(payload.amount)
        if amount <= 0:
            raise HTTPException(
                status_code=400, detail="Payment amount must be greater than zero"
            )
        balance = round_money(due.balance)
        if amount > balance:
            raise HTTPException(
                status_code=400,
                detail={
                    "code": "payment_exceeds_balance",
                    "message": (
                        f"Payment amount ({amount}) exceeds outstanding balance ({balance})"
                    ),
                },
            )
        data, content_type = receipt_storage.read_receipt(receipt)
        receipt_storage.validate_receipt(content_type, data)
        stored = receipt_storage.store_receipt(data, content_type, storage=storage)

        payment = Payment(
            due_id=due.id,
            pharmacy_id=due.pharmacy_id,
            amount=amount,
            payment_method=payload.payment_method,
            payment_reference=payload.payment_reference,
            receipt_url=stored.url,
            receipt_public_id=stored.public_id,
            approval_status=PaymentApprovalStatus.pending,
            submitted_by=coerce_uuid(submitted_by),
            submitted_at=datetime.now(UTC),
        )
        db.add(payment)
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            try:
                receipt_storage.delete_receipt(stored.public_id, storage=storage)
            except (ObjectStorageError, OSError, ValueError) as exc:
                logger.warning("Orphaned receipt %s not removed: %s", stored.public_id, exc)
            raise
        db.refresh(payment)
        logger.info(
            "Payment %s submitted for due %s (%s, receipt on %s)",
            payment.id,
            due.id,
            amount,
            stored.backend,
        )
        return payment

    @staticmethod
    def get(db: Session, payment_id: str) -> Payment:
        return get_or_404(db, Payment, payment_id, detail="Payment not found")

    @staticmethod
    def list(
        db: Session,
        due_id: str | None = None,
        pharmacy_id: str | None = None,
        approval_status: str | None = None,
        payment_method: str | None = None,
        order_by: str = "submitted_at",
        order_dir: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ):
        query = db.query(Payment)
        if due_id:
            query = query.filter(Payment.due_id == coerce_uuid(due_id))
        if pharmacy_id:
            query = query.filter(Payment.pharmacy_id == coerce_uuid(pharmacy_id))
        if approval_status:
            query = query.filter(
                Payment.approval_status
                == validate_enum(approval_status, PaymentApprovalStatus, "approval_status")
            )
        if payment_method:
            query = query.filter(
                Payment.payment_method
                == validate_enum(payment_method, PaymentMethod, "payment_method")
            )
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "submitted_at": Payment.submitted_at,
                "amount": Payment.amount,
                "created_at": Payment.created_at,
            },
        )
        return apply_pagination(query, limit, offset).all()
