"""Due reporting services.

Read-only aggregations over dues and payments, plus clearance certificates
for settled dues.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal

from fastapi import HTTPException
from sqlalchemy.orm import Session

from duesdesk.models.due import Due, DuePaymentStatus, DueType
from duesdesk.models.payment import Payment, PaymentApprovalStatus
from duesdesk.services.common import ZERO, apply_pagination, coerce_uuid, get_or_404, round_money
from duesdesk.services.dues._common import _validate_pharmacy
from duesdesk.services.numbering import next_certificate_number

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _is_overdue(due: Due, now: datetime) -> bool:
    return due.payment_status != DuePaymentStatus.paid and _as_utc(due.due_date) < now


class DueReporting:
    """Service for due statistics and certificates."""

    @staticmethod
    def due_analytics(db: Session, year: int | None = None) -> dict:
        """Summarise dues for a year (defaults to the current year).

        Returns:
            Dictionary with keys:
            - year
            - summary: total_dues, total_amount, total_paid, outstanding,
              paid_count, overdue_count
            - dues_by_type: per due type count, total_amount, amount_paid
        """
        now = datetime.now(UTC)
        year = year or now.year
        dues = db.query(Due).filter(Due.year == year).all()

        summary = {
            "total_dues": 0,
            "total_amount": ZERO,
            "total_paid": ZERO,
            "outstanding": ZERO,
            "paid_count": 0,
            "overdue_count": 0,
        }
        by_type: dict = {}
        for due in dues:
            total = round_money(due.total_amount or 0)
            paid = round_money(due.amount_paid or 0)
            summary["total_dues"] += 1
            summary["total_amount"] += total
            summary["total_paid"] += paid
            summary["outstanding"] += round_money(due.balance or 0)
            if due.payment_status == DuePaymentStatus.paid:
                summary["paid_count"] += 1
            elif _is_overdue(due, now):
                summary["overdue_count"] += 1

            bucket = by_type.setdefault(
                due.due_type_id,
                {
                    "due_type_id": due.due_type_id,
                    "due_type_name": None,
                    "count": 0,
                    "total_amount": ZERO,
                    "amount_paid": ZERO,
                },
            )
            bucket["count"] += 1
            bucket["total_amount"] += total
            bucket["amount_paid"] += paid

        if by_type:
            names = dict(
                db.query(DueType.id, DueType.name)
                .filter(DueType.id.in_(list(by_type)))
                .all()
            )
            for due_type_id, bucket in by_type.items():
                bucket["due_type_name"] = names.get(due_type_id)

        return {
            "year": year,
            "summary": summary,
            "dues_by_type": sorted(
                by_type.values(), key=lambda item: item["total_amount"], reverse=True
            ),
        }

    @staticmethod
    def pharmacy_analytics(db: Session, pharmacy_id: str) -> dict:
        pharmacy = _validate_pharmacy(db, pharmacy_id)
        totals = {
            "total_dues": 0,
            "total_amount": ZERO,
            "total_paid": ZERO,
            "outstanding": ZERO,
        }
        for due in db.query(Due).filter(Due.pharmacy_id == pharmacy.id).all():
            totals["total_dues"] += 1
            totals["total_amount"] += round_money(due.total_amount or 0)
            totals["total_paid"] += round_money(due.amount_paid or 0)
            totals["outstanding"] += round_money(due.balance or 0)
        return totals

    @staticmethod
    def overdue_dues(db: Session, limit: int = 50, offset: int = 0) -> list[Due]:
        query = (
            db.query(Due)
            .filter(Due.due_date < datetime.now(UTC))
            .filter(Due.payment_status != DuePaymentStatus.paid)
            .order_by(Due.due_date.asc())
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def pending_payments(
        db: Session, pharmacy_id: str | None = None, limit: int = 50, offset: int = 0
    ) -> list[Payment]:
        query = db.query(Payment).filter(
            Payment.approval_status == PaymentApprovalStatus.pending
        )
        if pharmacy_id:
            query = query.filter(Payment.pharmacy_id == coerce_uuid(pharmacy_id))
        query = query.order_by(Payment.submitted_at.asc())
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def clearance_certificate(db: Session, due_id: str) -> dict:
        """Issue a clearance certificate for a fully paid due.

        Each call draws a new certificate number.
        """
        due = get_or_404(db, Due, due_id, detail="Due not found")
        if due.payment_status != DuePaymentStatus.paid:
            raise HTTPException(
                status_code=400,
                detail="Certificate can only be generated for paid dues",
            )
        last_approval = (
            db.query(Payment.approved_at)
            .filter(Payment.due_id == due.id)
            .filter(Payment.approval_status == PaymentApprovalStatus.approved)
            .order_by(Payment.approved_at.desc())
            .first()
        )
        paid_date = _as_utc(last_approval[0] if last_approval else due.updated_at)
        now = datetime.now(UTC)
        certificate_number = next_certificate_number(db)
        db.commit()
        logger.info("Issued certificate %s for due %s", certificate_number, due.id)
        return {
            "certificate_number": certificate_number,
            "pharmacy_name": due.pharmacy.name,
            "due_type": due.due_type.name,
            "amount": round_money(due.total_amount or Decimal("0")),
            "paid_date": paid_date,
            "valid_until": datetime(now.year, 12, 31, 23, 59, 59, tzinfo=UTC),
        }

    @staticmethod
    def pharmacy_payment_history(db: Session, pharmacy_id: str) -> dict:
        """All payments for a pharmacy, newest first, with its dues alongside
        so dues without payments still show up."""
        pharmacy = _validate_pharmacy(db, pharmacy_id)
        payments = (
            db.query(Payment)
            .filter(Payment.pharmacy_id == pharmacy.id)
            .order_by(Payment.created_at.desc())
            .all()
        )
        dues = (
            db.query(Due)
            .filter(Due.pharmacy_id == pharmacy.id)
            .order_by(Due.due_date.desc())
            .all()
        )
        return {"count": len(payments), "data": payments, "dues": dues}
