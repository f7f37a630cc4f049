import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from duesdesk.db import Base


class DuePaymentStatus(enum.Enum):
    pending = "pending"
    partially_paid = "partially_paid"
    paid = "paid"
    overdue = "overdue"


class DueAssignmentType(enum.Enum):
    individual = "individual"
    bulk = "bulk"


class RecurringFrequency(enum.Enum):
    monthly = "monthly"
    quarterly = "quarterly"
    annually = "annually"


class DueType(Base):
    __tablename__ = "due_types"
    __table_args__ = (UniqueConstraint("name", name="uq_due_types_name"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    default_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    recurring_period: Mapped[RecurringFrequency | None] = mapped_column(
        Enum(RecurringFrequency)
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    dues = relationship("Due", back_populates="due_type")


class Due(Base):
    __tablename__ = "dues"
    __table_args__ = (
        UniqueConstraint(
            "pharmacy_id", "due_type_id", "year", name="uq_dues_pharmacy_type_year"
        ),
        Index("ix_dues_pharmacy_year", "pharmacy_id", "year"),
        Index("ix_dues_payment_status", "payment_status"),
        Index("ix_dues_due_date", "due_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    pharmacy_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("pharmacies.id"), nullable=False
    )
    due_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("due_types.id"), nullable=False
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    payment_status: Mapped[DuePaymentStatus] = mapped_column(
        Enum(DuePaymentStatus), default=DuePaymentStatus.pending, nullable=False
    )
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    assignment_type: Mapped[DueAssignmentType] = mapped_column(
        Enum(DueAssignmentType), nullable=False
    )
    assigned_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    recurring_frequency: Mapped[RecurringFrequency | None] = mapped_column(
        Enum(RecurringFrequency)
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    pharmacy = relationship("Pharmacy", back_populates="dues")
    due_type = relationship("DueType", back_populates="dues")
    penalties = relationship(
        "DuePenalty",
        back_populates="due",
        order_by="DuePenalty.added_at",
        cascade="all, delete-orphan",
    )
    payments = relationship("Payment", back_populates="due")


class DuePenalty(Base):
    __tablename__ = "due_penalties"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    due_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("dues.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    added_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    due = relationship("Due", back_populates="penalties")
