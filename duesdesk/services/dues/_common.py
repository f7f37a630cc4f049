"""Helpers shared by the dues services."""

from calendar import monthrange
from datetime import datetime
from decimal import Decimal

from fastapi import HTTPException
from sqlalchemy.orm import Session

from duesdesk.models.due import Due, DuePaymentStatus, DueType, RecurringFrequency
from duesdesk.models.pharmacy import Pharmacy
from duesdesk.services.common import ZERO, coerce_uuid, round_money

# Months advanced per recurring step.
RECURRING_MONTH_STEPS = {
    RecurringFrequency.monthly: 1,
    RecurringFrequency.quarterly: 3,
    RecurringFrequency.annually: 12,
}
MAX_RECURRING_INSTANCES = 12


def compute_payment_status(
    amount_paid: Decimal, total_amount: Decimal
) -> tuple[DuePaymentStatus, Decimal]:
    """Return (status, balance) for the given paid and total amounts."""
    paid = round_money(amount_paid or 0)
    total = round_money(total_amount or 0)
    balance = total - paid
    if paid <= 0:
        return DuePaymentStatus.pending, max(ZERO, balance)
    if balance > 0:
        return DuePaymentStatus.partially_paid, balance
    return DuePaymentStatus.paid, ZERO


def penalties_total(due: Due) -> Decimal:
    return sum((round_money(p.amount) for p in due.penalties), ZERO)


def _recalculate_due_totals(due: Due) -> None:
    """Recompute total_amount, balance and payment_status from amount,
    penalties and amount_paid."""
    due.amount = round_money(due.amount or 0)
    due.amount_paid = max(ZERO, round_money(due.amount_paid or 0))
    due.total_amount = round_money(due.amount + penalties_total(due))
    status, balance = compute_payment_status(due.amount_paid, due.total_amount)
    due.balance = balance
    due.payment_status = status


def _add_months(value: datetime, months: int) -> datetime:
    total = value.month - 1 + months
    year = value.year + total // 12
    month = total % 12 + 1
    day = min(value.day, monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _recurring_dates(due_date: datetime, frequency: RecurringFrequency) -> list[datetime]:
    step = RECURRING_MONTH_STEPS[frequency]
    return [
        _add_months(due_date, index * step)
        for index in range(1, MAX_RECURRING_INSTANCES + 1)
    ]


def _validate_due_type(db: Session, due_type_id) -> DueType:
    due_type = db.get(DueType, coerce_uuid(due_type_id))
    if not due_type:
        raise HTTPException(status_code=404, detail="Due type not found")
    return due_type


def _validate_pharmacy(db: Session, pharmacy_id) -> Pharmacy:
    pharmacy = db.get(Pharmacy, coerce_uuid(pharmacy_id))
    if not pharmacy:
        raise HTTPException(status_code=404, detail="Pharmacy not found")
    return pharmacy


def _lock_due(db: Session, due_id) -> Due:
    """Load a due with a row lock held until the transaction ends."""
    due = db.get(
        Due,
        coerce_uuid(due_id),
        with_for_update=True,
        populate_existing=True,
    )
    if not due:
        raise HTTPException(status_code=404, detail="Due not found")
    return due
