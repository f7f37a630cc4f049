"""Payment review and due adjustment services.

These are the only writers of a due's financial fields. Every operation
locks the due row first, so approvals and reversals for the same due are
applied one at a time, and each finishes with a single commit.
"""

import logging
from datetime import UTC, datetime
from decimal import Decimal

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from duesdesk.metrics import observe_review
from duesdesk.models.due import Due, DuePenalty
from duesdesk.models.payment import Payment, PaymentApprovalStatus
from duesdesk.schemas.due import DuePenaltyCreate
from duesdesk.services import receipt_storage
from duesdesk.services.common import ZERO, coerce_uuid, get_or_404, round_money
from duesdesk.services.dues._common import (
    _lock_due,
    _recalculate_due_totals,
    compute_payment_status,
    penalties_total,
)
from duesdesk.services.object_storage import ObjectStorageError, StorageService

logger = logging.getLogger(__name__)


def _already_reviewed(status: PaymentApprovalStatus) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={
            "code": "payment_already_reviewed",
            "message": f"Payment has already been {status.value}",
        },
    )


def _ensure_pending(payment: Payment) -> None:
    if payment.approval_status != PaymentApprovalStatus.pending:
        raise _already_reviewed(payment.approval_status)


def _transition_from_pending(db: Session, payment: Payment, values: dict) -> None:
    """Move a payment out of pending with a conditional UPDATE.

    Zero matched rows means another reviewer got there first.
    """
    updated = (
        db.query(Payment)
        .filter(Payment.id == payment.id)
        .filter(Payment.approval_status == PaymentApprovalStatus.pending)
        .update(values, synchronize_session=False)
    )
    if not updated:
        db.rollback()
        db.refresh(payment)
        raise _already_reviewed(payment.approval_status)


class PaymentReviews:
    @staticmethod
    def approve(db: Session, payment_id: str, approved_by=None) -> Payment:
        payment = get_or_404(db, Payment, payment_id, detail="Payment not found")
        _ensure_pending(payment)
        due = _lock_due(db, payment.due_id)
        amount = round_money(payment.amount)
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
        now = datetime.now(UTC)
        _transition_from_pending(
            db,
            payment,
            {
                Payment.approval_status: PaymentApprovalStatus.approved,
                Payment.approved_by: coerce_uuid(approved_by),
                Payment.approved_at: now,
                Payment.updated_at: now,
            },
        )
        due.amount_paid = round_money(due.amount_paid) + amount
        _recalculate_due_totals(due)
        db.commit()
        db.refresh(payment)
        observe_review("approved")
        logger.info(
            "Approved payment %s (%s) for due %s, balance now %s",
            payment.id,
            amount,
            due.id,
            due.balance,
        )
        return payment

    @staticmethod
    def reject(
        db: Session, payment_id: str, rejection_reason: str | None, approved_by=None
    ) -> Payment:
        if not rejection_reason or not rejection_reason.strip():
            raise HTTPException(status_code=400, detail="Rejection reason is required")
        payment = get_or_404(db, Payment, payment_id, detail="Payment not found")
        _ensure_pending(payment)
        now = datetime.now(UTC)
        _transition_from_pending(
            db,
            payment,
            {
                Payment.approval_status: PaymentApprovalStatus.rejected,
                Payment.rejection_reason: rejection_reason.strip(),
                Payment.approved_by: coerce_uuid(approved_by),
                Payment.approved_at: now,
                Payment.updated_at: now,
            },
        )
        db.commit()
        db.refresh(payment)
        observe_review("rejected")
        logger.info("Rejected payment %s", payment.id)
        return payment

    @staticmethod
    def delete(db: Session, payment_id: str, storage: StorageService | None = None) -> None:
        """Delete a payment, reversing its credit first when it was approved."""
        payment = get_or_404(db, Payment, payment_id, detail="Payment not found")
        due = _lock_due(db, payment.due_id)
        # Re-read under the due lock; an approval may have committed meanwhile.
        payment = get_or_404(
            db,
            Payment,
            payment.id,
            detail="Payment not found",
            with_for_update=True,
            populate_existing=True,
        )
        if payment.approval_status == PaymentApprovalStatus.approved:
            due.amount_paid = max(ZERO, round_money(due.amount_paid) - round_money(payment.amount))
            _recalculate_due_totals(due)
        public_id = payment.receipt_public_id
        db.delete(payment)
        db.commit()
        try:
            receipt_storage.delete_receipt(public_id, storage=storage)
        except (ObjectStorageError, OSError, ValueError) as exc:
            logger.warning("Failed to delete receipt %s: %s", public_id, exc)
        observe_review("deleted")
        logger.info("Deleted payment %s from due %s", payment_id, due.id)

    @staticmethod
    def mark_paid(db: Session, due_id: str) -> Due:
        """Administratively settle a due in full."""
        due = _lock_due(db, due_id)
        _recalculate_due_totals(due)
        due.amount_paid = due.total_amount
        _recalculate_due_totals(due)
        db.commit()
        db.refresh(due)
        logger.info("Marked due %s as paid", due.id)
        return due

    @staticmethod
    def add_penalty(
        db: Session, due_id: str, payload: DuePenaltyCreate, added_by=None
    ) -> Due:
        due = _lock_due(db, due_id)
        due.penalties.append(
            DuePenalty(
                amount=round_money(payload.amount),
                reason=payload.reason,
                added_by=coerce_uuid(added_by),
                added_at=datetime.now(UTC),
            )
        )
        _recalculate_due_totals(due)
        db.commit()
        db.refresh(due)
        logger.info("Added penalty of %s to due %s", payload.amount, due.id)
        return due

    @staticmethod
    def fix_payment_statuses(db: Session) -> dict:
        """Recompute derived fields for every due whose stored values have drifted."""
        examined = 0
        updated = 0
        for due in db.query(Due).order_by(Due.created_at.asc()).with_for_update().all():
            examined += 1
            expected_total = round_money(round_money(due.amount) + penalties_total(due))
            expected_status, expected_balance = compute_payment_status(
                due.amount_paid, expected_total
            )
            if (
                round_money(due.total_amount) != expected_total
                or round_money(due.balance) != expected_balance
                or due.payment_status != expected_status
            ):
                _recalculate_due_totals(due)
                updated += 1
        db.commit()
        logger.info("Payment status repair examined %s dues, updated %s", examined, updated)
        return {"examined": examined, "updated": updated}

    @staticmethod
    def find_inconsistencies(db: Session) -> list[dict]:
        """List dues whose amount_paid differs from their approved payments."""
        approved_totals = dict(
            db.query(Payment.due_id, func.sum(Payment.amount))
            .filter(Payment.approval_status == PaymentApprovalStatus.approved)
            .group_by(Payment.due_id)
            .all()
        )
        drifted = []
        for due in db.query(Due).order_by(Due.created_at.asc()).all():
            approved_total = round_money(approved_totals.get(due.id) or Decimal("0"))
            if round_money(due.amount_paid) != approved_total:
                drifted.append(
                    {
                        "due_id": due.id,
                        "amount_paid": round_money(due.amount_paid),
                        "approved_total": approved_total,
                    }
                )
        return drifted
