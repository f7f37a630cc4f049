"""Create pharmacies, dues, payments and sequence counters.

Revision ID: a1c4e7d20b13
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "a1c4e7d20b13"
down_revision = None
branch_labels = None
depends_on = None


def _enum(name: str, *values: str):
    return postgresql.ENUM(*values, name=name, create_type=False)


_ENUMS = {
    "registrationstatus": ("active", "pending", "expired", "suspended"),
    "recurringfrequency": ("monthly", "quarterly", "annually"),
    "duepaymentstatus": ("pending", "partially_paid", "paid", "overdue"),
    "dueassignmenttype": ("individual", "bulk"),
    "paymentmethod": ("bank_transfer", "cash", "check"),
    "paymentapprovalstatus": ("pending", "approved", "rejected"),
}


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in _ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "sequence_counters",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("key", sa.String(80), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("key", name="uq_sequence_counters_key"),
    )

    op.create_table(
        "pharmacies",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("registration_number", sa.String(40), nullable=False),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column(
            "registration_status",
            _enum("registrationstatus", *_ENUMS["registrationstatus"]),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        *_timestamps(),
        sa.UniqueConstraint("registration_number", name="uq_pharmacies_registration_number"),
    )
    op.create_index("ix_pharmacies_owner_id", "pharmacies", ["owner_id"])

    op.create_table(
        "due_types",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("default_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "recurring_period",
            _enum("recurringfrequency", *_ENUMS["recurringfrequency"]),
            nullable=True,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("name", name="uq_due_types_name"),
    )

    op.create_table(
        "dues",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("pharmacy_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("pharmacies.id"), nullable=False),
        sa.Column("due_type_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("due_types.id"), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column(
            "payment_status",
            _enum("duepaymentstatus", *_ENUMS["duepaymentstatus"]),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "assignment_type",
            _enum("dueassignmenttype", *_ENUMS["dueassignmenttype"]),
            nullable=False,
        ),
        sa.Column("assigned_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "recurring_frequency",
            _enum("recurringfrequency", *_ENUMS["recurringfrequency"]),
            nullable=True,
        ),
        *_timestamps(),
        sa.UniqueConstraint(
            "pharmacy_id", "due_type_id", "year", name="uq_dues_pharmacy_type_year"
        ),
    )
    op.create_index("ix_dues_pharmacy_year", "dues", ["pharmacy_id", "year"])
    op.create_index("ix_dues_payment_status", "dues", ["payment_status"])
    op.create_index("ix_dues_due_date", "dues", ["due_date"])

    op.create_table(
        "due_penalties",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("due_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("dues.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("added_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_due_penalties_due_id", "due_penalties", ["due_id"])

    op.create_table(
        "payments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("due_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("dues.id"), nullable=False),
        sa.Column("pharmacy_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("pharmacies.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "payment_method",
            _enum("paymentmethod", *_ENUMS["paymentmethod"]),
            nullable=False,
        ),
        sa.Column("payment_reference", sa.String(120), nullable=True),
        sa.Column("receipt_url", sa.String(1024), nullable=False),
        sa.Column("receipt_public_id", sa.String(512), nullable=False),
        sa.Column(
            "approval_status",
            _enum("paymentapprovalstatus", *_ENUMS["paymentapprovalstatus"]),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("approved_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("submitted_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        *_timestamps(),
    )
    op.create_index("ix_payments_due_id", "payments", ["due_id"])
    op.create_index("ix_payments_pharmacy_id", "payments", ["pharmacy_id"])
    op.create_index("ix_payments_approval_status", "payments", ["approval_status"])
    op.create_index("ix_payments_submitted_at", "payments", ["submitted_at"])


def downgrade() -> None:
    op.drop_table("payments")
    op.drop_table("due_penalties")
    op.drop_table("dues")
    op.drop_table("due_types")
    op.drop_index("ix_pharmacies_owner_id", table_name="pharmacies")
    op.drop_table("pharmacies")
    op.drop_table("sequence_counters")
    for name in reversed(list(_ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
