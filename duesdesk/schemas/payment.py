from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from duesdesk.models.payment import PaymentApprovalStatus, PaymentMethod
from duesdesk.schemas.due import DueRead


class PaymentSubmit(BaseModel):
    due_id: UUID
    pharmacy_id: UUID
    amount: Decimal
    payment_method: PaymentMethod
    payment_reference: str | None = Field(default=None, max_length=120)


class PaymentReject(BaseModel):
    rejection_reason: str | None = None


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    due_id: UUID
    pharmacy_id: UUID
    amount: Decimal
    payment_method: PaymentMethod
    payment_reference: str | None = None
    receipt_url: str
    receipt_public_id: str
    approval_status: PaymentApprovalStatus
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    submitted_by: UUID | None = None
    submitted_at: datetime
    created_at: datetime
    updated_at: datetime


class PaymentWithDueRead(PaymentRead):
    due: DueRead | None = None


class PaymentEnvelope(BaseModel):
    data: PaymentRead


class PaymentWithDueEnvelope(BaseModel):
    data: PaymentWithDueRead


class EmptyEnvelope(BaseModel):
    data: dict = Field(default_factory=dict)


class PharmacyPaymentHistory(BaseModel):
    count: int
    data: list[PaymentRead]
    dues: list[DueRead]
