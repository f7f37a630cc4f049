import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from duesdesk.db import Base


class PaymentMethod(enum.Enum):
    bank_transfer = "bank_transfer"
    cash = "cash"
    check = "check"


class PaymentApprovalStatus(enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        Index("ix_payments_due_id", "due_id"),
        Index("ix_payments_pharmacy_id", "pharmacy_id"),
        Index("ix_payments_approval_status", "approval_status"),
        Index("ix_payments_submitted_at", "submitted_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    due_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("dues.id"), nullable=False
    )
    pharmacy_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("pharmacies.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod), nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(String(120))
    receipt_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    receipt_public_id: Mapped[str] = mapped_column(String(512), nullable=False)
    approval_status: Mapped[PaymentApprovalStatus] = mapped_column(
        Enum(PaymentApprovalStatus), default=PaymentApprovalStatus.pending, nullable=False
    )
    approved_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    submitted_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    due = relationship("Due", back_populates="payments")
    pharmacy = relationship("Pharmacy")
