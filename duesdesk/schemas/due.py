from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from duesdesk.models.due import (
    DueAssignmentType,
    DuePaymentStatus,
    RecurringFrequency,
)


class DueTypeBase(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str | None = None
    default_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    is_recurring: bool = False
    recurring_period: RecurringFrequency | None = None
    is_active: bool = True

    @model_validator(mode="after")
    def _validate_recurring_period(self) -> "DueTypeBase":
        if self.is_recurring and self.recurring_period is None:
            raise ValueError("recurring_period is required for recurring due types")
        return self


class DueTypeCreate(DueTypeBase):
    pass


class DueTypeUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = None
    default_amount: Decimal | None = Field(default=None, ge=0)
    is_recurring: bool | None = None
    recurring_period: RecurringFrequency | None = None
    is_active: bool | None = None


class DueTypeRead(DueTypeBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    updated_at: datetime


class DuePenaltyCreate(BaseModel):
    amount: Decimal = Field(gt=0)
    reason: str = Field(min_length=1, max_length=255)


class DuePenaltyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    amount: Decimal
    reason: str
    added_by: UUID | None = None
    added_at: datetime


class DueRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    pharmacy_id: UUID
    due_type_id: UUID
    year: int
    title: str
    description: str | None = None
    amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    balance: Decimal
    payment_status: DuePaymentStatus
    due_date: datetime
    assignment_type: DueAssignmentType
    assigned_by: UUID | None = None
    assigned_at: datetime
    is_recurring: bool
    recurring_frequency: RecurringFrequency | None = None
    penalties: list[DuePenaltyRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class DueUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    amount: Decimal | None = Field(default=None, ge=0)
    due_date: datetime | None = None


class DueIndividualAssign(BaseModel):
    due_type_id: UUID
    amount: Decimal = Field(gt=0)
    due_date: datetime
    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    is_recurring: bool = False
    recurring_frequency: RecurringFrequency | None = None


class DueAssignRequest(BaseModel):
    """Body of the combined assign operation.

    Required fields are checked by the service so that a missing field is
    reported with the same message regardless of which one is absent.
    """

    due_type_id: UUID | None = None
    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    amount: Decimal | None = Field(default=None, gt=0)
    due_date: datetime | None = None
    assignment_type: str | None = None
    pharmacy_ids: list[UUID] | None = None
    is_recurring: bool = False
    recurring_frequency: RecurringFrequency | None = None


class DueAssignmentError(BaseModel):
    pharmacy_id: str
    error: str


class DueAssignResponse(BaseModel):
    created: int
    errors: int
    dues: list[DueRead]
    error_details: list[DueAssignmentError]


class DueBulkAssignRequest(BaseModel):
    due_type_id: UUID | None = None
    amount: Decimal | None = Field(default=None, gt=0)
    due_date: datetime | None = None
    description: str | None = None
    pharmacy_ids: list[str] | None = None


class DueBulkAssignResponse(BaseModel):
    count: int
    data: list[DueRead]
    failed_assignments: list[DueAssignmentError] | None = None


class DueAssignIndividualResponse(BaseModel):
    data: DueRead
    message: str


class DueEnvelope(BaseModel):
    data: DueRead


class DueStatusRepairResponse(BaseModel):
    message: str
    examined: int
    updated: int


class DueInconsistency(BaseModel):
    due_id: UUID
    amount_paid: Decimal
    approved_total: Decimal


class ClearanceCertificate(BaseModel):
    certificate_number: str
    pharmacy_name: str
    due_type: str
    amount: Decimal
    paid_date: datetime
    valid_until: datetime


class DueAnalyticsSummary(BaseModel):
    total_dues: int = 0
    total_amount: Decimal = Decimal("0.00")
    total_paid: Decimal = Decimal("0.00")
    outstanding: Decimal = Decimal("0.00")
    paid_count: int = 0
    overdue_count: int = 0


class DueTypeBreakdown(BaseModel):
    due_type_id: UUID
    due_type_name: str | None = None
    count: int
    total_amount: Decimal
    amount_paid: Decimal


class DueAnalytics(BaseModel):
    year: int
    summary: DueAnalyticsSummary
    dues_by_type: list[DueTypeBreakdown]


class PharmacyDueAnalytics(BaseModel):
    total_dues: int = 0
    total_amount: Decimal = Decimal("0.00")
    total_paid: Decimal = Decimal("0.00")
    outstanding: Decimal = Decimal("0.00")
