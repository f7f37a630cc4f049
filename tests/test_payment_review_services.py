import uuid
from datetime import UTC, datetime
from decimal import Decimal

import pytest
from fastapi import HTTPException

from duesdesk.models import (
    Due,
    DueAssignmentType,
    DuePaymentStatus,
    Payment,
    PaymentApprovalStatus,
    PaymentMethod,
)
from duesdesk.schemas.due import DuePenaltyCreate
from duesdesk.schemas.payment import PaymentSubmit
from duesdesk.services import dues as dues_service
from duesdesk.services.dues.assignments import upsert_due


def _submit(db_session, due, amount, storage, make_receipt):
    return dues_service.payments.submit(
        db_session,
        PaymentSubmit(
            due_id=due.id,
            pharmacy_id=due.pharmacy_id,
            amount=Decimal(amount),
            payment_method=PaymentMethod.bank_transfer,
        ),
        make_receipt(),
        storage=storage,
    )


def _assert_consistent(due: Due):
    expected_balance = max(Decimal("0.00"), due.total_amount - due.amount_paid)
    assert due.balance == expected_balance
    if due.amount_paid <= 0:
        assert due.payment_status == DuePaymentStatus.pending
    elif due.balance > 0:
        assert due.payment_status == DuePaymentStatus.partially_paid
    else:
        assert due.payment_status == DuePaymentStatus.paid


def test_partial_then_full_payment_settles_due(
    db_session, due, admin_id, s3_storage, make_receipt
):
    first = _submit(db_session, due, "400.00", s3_storage, make_receipt)
    approved = dues_service.reviews.approve(db_session, str(first.id), admin_id)
    assert approved.approval_status == PaymentApprovalStatus.approved
    assert approved.approved_by == admin_id
    assert approved.approved_at is not None

    db_session.refresh(due)
    assert due.amount_paid == Decimal("400.00")
    assert due.balance == Decimal("600.00")
    assert due.payment_status == DuePaymentStatus.partially_paid

    second = _submit(db_session, due, "600.00", s3_storage, make_receipt)
    dues_service.reviews.approve(db_session, str(second.id), admin_id)

    db_session.refresh(due)
    assert due.amount_paid == Decimal("1000.00")
    assert due.balance == Decimal("0.00")
    assert due.payment_status == DuePaymentStatus.paid


def test_second_approval_is_rejected_and_credits_once(
    db_session, due, admin_id, s3_storage, make_receipt
):
    payment = _submit(db_session, due, "250.00", s3_storage, make_receipt)
    dues_service.reviews.approve(db_session, str(payment.id), admin_id)

    with pytest.raises(HTTPException) as exc:
        dues_service.reviews.approve(db_session, str(payment.id), admin_id)
    assert exc.value.status_code == 400
    assert exc.value.detail == {
        "code": "payment_already_reviewed",
        "message": "Payment has already been approved",
    }

    db_session.refresh(due)
    assert due.amount_paid == Decimal("250.00")
    _assert_consistent(due)


def test_approval_revalidates_against_live_balance(
    db_session, due, admin_id, s3_storage, make_receipt
):
    first = _submit(db_session, due, "700.00", s3_storage, make_receipt)
    second = _submit(db_session, due, "700.00", s3_storage, make_receipt)
    dues_service.reviews.approve(db_session, str(first.id), admin_id)

    with pytest.raises(HTTPException) as exc:
        dues_service.reviews.approve(db_session, str(second.id), admin_id)
    assert exc.value.status_code == 400
    assert exc.value.detail["code"] == "payment_exceeds_balance"

    db_session.refresh(second)
    db_session.refresh(due)
    assert second.approval_status == PaymentApprovalStatus.pending
    assert due.amount_paid == Decimal("700.00")
    assert due.balance == Decimal("300.00")


def test_reject_records_reason_without_due_change(
    db_session, due, admin_id, s3_storage, make_receipt
):
    payment = _submit(db_session, due, "100.00", s3_storage, make_receipt)
    rejected = dues_service.reviews.reject(
        db_session, str(payment.id), "Receipt is unreadable", admin_id
    )
    assert rejected.approval_status == PaymentApprovalStatus.rejected
    assert rejected.rejection_reason == "Receipt is unreadable"
    assert rejected.approved_by == admin_id

    db_session.refresh(due)
    assert due.amount_paid == Decimal("0.00")
    assert due.payment_status == DuePaymentStatus.pending

    with pytest.raises(HTTPException) as exc:
        dues_service.reviews.approve(db_session, str(payment.id), admin_id)
    assert exc.value.detail["message"] == "Payment has already been rejected"



def test_reject_after_approval_is_refused_and_keeps_credit(
    db_session, due, admin_id, s3_storage, make_receipt
):
    payment = _submit(db_session, due, "400.00", s3_storage, make_receipt)
    dues_service.reviews.approve(db_session, str(payment.id), admin_id)

    with pytest.raises(HTTPException) as exc:
        dues_service.reviews.reject(db_session, str(payment.id), "Duplicate transfer", admin_id)
    assert exc.value.status_code == 400
    assert exc.value.detail == {
        "code": "payment_already_reviewed",
        "message": "Payment has already been approved",
    }

    db_session.refresh(payment)
    db_session.refresh(due)
    assert payment.approval_status == PaymentApprovalStatus.approved
    assert payment.rejection_reason is None
    assert due.amount_paid == Decimal("400.00")
    assert due.balance == Decimal("600.00")
    _assert_consistent(due)

@pytest.mark.parametrize("reason", [None, "", "   "])
def test_reject_requires_reason(db_session, due, s3_storage, make_receipt, reason):
    payment = _submit(db_session, due, "100.00", s3_storage, make_receipt)
    with pytest.raises(HTTPException) as exc:
        dues_service.reviews.reject(db_session, str(payment.id), reason)
    assert exc.value.status_code == 400
    assert exc.value.detail == "Rejection reason is required"


def test_review_unknown_payment_returns_404(db_session):
    with pytest.raises(HTTPException) as exc:
        dues_service.reviews.approve(db_session, str(uuid.uuid4()))
    assert exc.value.status_code == 404


def test_delete_approved_payment_reverses_credit(
    db_session, due, admin_id, s3_storage, fake_s3, make_receipt
):
    payment = _submit(db_session, due, "300.00", s3_storage, make_receipt)
    payment_id = payment.id
    key = payment.receipt_public_id
    dues_service.reviews.approve(db_session, str(payment.id), admin_id)

    dues_service.reviews.delete(db_session, str(payment.id), storage=s3_storage)

    db_session.refresh(due)
    assert due.amount_paid == Decimal("0.00")
    assert due.balance == Decimal("1000.00")
    assert due.payment_status == DuePaymentStatus.pending
    assert db_session.get(Payment, payment_id) is None
    assert key not in fake_s3.objects


def test_delete_pending_payment_leaves_due_alone(
    db_session, due, admin_id, s3_storage, make_receipt
):
    kept = _submit(db_session, due, "200.00", s3_storage, make_receipt)
    dues_service.reviews.approve(db_session, str(kept.id), admin_id)
    pending = _submit(db_session, due, "100.00", s3_storage, make_receipt)

    dues_service.reviews.delete(db_session, str(pending.id), storage=s3_storage)

    db_session.refresh(due)
    assert due.amount_paid == Decimal("200.00")
    assert due.payment_status == DuePaymentStatus.partially_paid


def test_delete_survives_receipt_storage_failure(
    db_session, due, s3_storage, fake_s3, make_receipt
):
    payment = _submit(db_session, due, "100.00", s3_storage, make_receipt)
    payment_id = payment.id
    fake_s3.fail_with = "ServiceUnavailable"

    dues_service.reviews.delete(db_session, str(payment_id), storage=s3_storage)

    assert db_session.get(Payment, payment_id) is None


def test_balance_invariant_across_review_sequence(
    db_session, due, admin_id, s3_storage, make_receipt
):
    a = _submit(db_session, due, "150.00", s3_storage, make_receipt)
    b = _submit(db_session, due, "250.00", s3_storage, make_receipt)
    c = _submit(db_session, due, "600.00", s3_storage, make_receipt)

    dues_service.reviews.approve(db_session, str(a.id), admin_id)
    db_session.refresh(due)
    _assert_consistent(due)

    dues_service.reviews.reject(db_session, str(b.id), "Duplicate", admin_id)
    db_session.refresh(due)
    _assert_consistent(due)

    dues_service.reviews.approve(db_session, str(c.id), admin_id)
    db_session.refresh(due)
    _assert_consistent(due)
    assert due.amount_paid == Decimal("750.00")

    dues_service.reviews.delete(db_session, str(a.id), storage=s3_storage)
    db_session.refresh(due)
    _assert_consistent(due)
    assert due.amount_paid == Decimal("600.00")


def test_mark_paid_settles_due(db_session, due):
    settled = dues_service.reviews.mark_paid(db_session, str(due.id))
    assert settled.amount_paid == Decimal("1000.00")
    assert settled.balance == Decimal("0.00")
    assert settled.payment_status == DuePaymentStatus.paid


def test_add_penalty_raises_total_and_balance(db_session, due, admin_id):
    dues_service.reviews.mark_paid(db_session, str(due.id))

    updated = dues_service.reviews.add_penalty(
        db_session,
        str(due.id),
        DuePenaltyCreate(amount=Decimal("150.00"), reason="Late payment"),
        admin_id,
    )
    assert updated.total_amount == Decimal("1150.00")
    assert updated.balance == Decimal("150.00")
    assert updated.payment_status == DuePaymentStatus.partially_paid
    assert [p.reason for p in updated.penalties] == ["Late payment"]


def test_fix_payment_statuses_repairs_drift(db_session, due, pharmacy, due_type, admin_id):
    healthy = upsert_due(
        db_session,
        pharmacy_id=pharmacy.id,
        due_type_id=due_type.id,
        title="Annual Dues - 2026",
        description=None,
        amount=Decimal("500.00"),
        due_date=datetime(2026, 3, 31, tzinfo=UTC),
        assignment_type=DueAssignmentType.individual,
        assigned_by=admin_id,
    )
    due.amount_paid = Decimal("1000.00")
    due.payment_status = DuePaymentStatus.pending
    due.balance = Decimal("1000.00")
    db_session.commit()

    result = dues_service.reviews.fix_payment_statuses(db_session)
    assert result == {"examined": 2, "updated": 1}

    db_session.refresh(due)
    db_session.refresh(healthy)
    assert due.payment_status == DuePaymentStatus.paid
    assert due.balance == Decimal("0.00")
    assert healthy.payment_status == DuePaymentStatus.pending


def test_find_inconsistencies_flags_drifted_amount_paid(
    db_session, due, admin_id, s3_storage, make_receipt
):
    payment = _submit(db_session, due, "400.00", s3_storage, make_receipt)
    dues_service.reviews.approve(db_session, str(payment.id), admin_id)
    assert dues_service.reviews.find_inconsistencies(db_session) == []

    due.amount_paid = Decimal("800.00")
    db_session.commit()

    drift = dues_service.reviews.find_inconsistencies(db_session)
    assert drift == [
        {
            "due_id": due.id,
            "amount_paid": Decimal("800.00"),
            "approved_total": Decimal("400.00"),
        }
    ]
