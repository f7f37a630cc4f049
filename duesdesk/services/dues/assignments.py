"""Assigning dues to pharmacies.

Every assignment goes through a single ``INSERT ... ON CONFLICT DO UPDATE``
keyed by (pharmacy_id, due_type_id, year), so concurrent assignments for
the same key converge on one row with the last writer's descriptive fields.
Financial progress (amount_paid) survives re-assignment.
"""

import logging
import uuid
from datetime import UTC, datetime
from decimal import Decimal

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from duesdesk.models.due import (
    Due,
    DueAssignmentType,
    DuePaymentStatus,
    RecurringFrequency,
)
from duesdesk.models.pharmacy import Pharmacy, RegistrationStatus
from duesdesk.schemas.due import (
    DueAssignRequest,
    DueBulkAssignRequest,
    DueIndividualAssign,
)
from duesdesk.services.common import ZERO, coerce_uuid, round_money, validate_enum
from duesdesk.services.dues._common import (
    _lock_due,
    _recalculate_due_totals,
    _recurring_dates,
    _validate_due_type,
    _validate_pharmacy,
)
from duesdesk.services.numbering import dialect_insert

logger = logging.getLogger(__name__)

# Columns overwritten when an assignment hits an existing due.
_UPSERT_UPDATE_COLUMNS = (
    "title",
    "description",
    "amount",
    "due_date",
    "assignment_type",
    "assigned_by",
    "assigned_at",
    "is_recurring",
    "recurring_frequency",
    "updated_at",
)


def _duplicate_message(year: int) -> str:
    return f"A due with the same due type already exists for this pharmacy for {year}"


def upsert_due(
    db: Session,
    *,
    pharmacy_id: uuid.UUID,
    due_type_id: uuid.UUID,
    title: str,
    description: str | None,
    amount: Decimal,
    due_date: datetime,
    assignment_type: DueAssignmentType,
    assigned_by: uuid.UUID | None,
    is_recurring: bool = False,
    recurring_frequency: RecurringFrequency | None = None,
) -> Due:
    """Create or update the due for (pharmacy, due type, year of due_date).

    Commits on success. The caller decides how to report failures.
    """
    now = datetime.now(UTC)
    amount = round_money(amount)
    stmt = dialect_insert(db, Due).values(
        id=uuid.uuid4(),
        pharmacy_id=pharmacy_id,
        due_type_id=due_type_id,
        year=due_date.year,
        title=title,
        description=description,
        amount=amount,
        total_amount=amount,
        amount_paid=ZERO,
        balance=amount,
        payment_status=DuePaymentStatus.pending,
        due_date=due_date,
        assignment_type=assignment_type,
        assigned_by=assigned_by,
        assigned_at=now,
        is_recurring=is_recurring,
        recurring_frequency=recurring_frequency if is_recurring else None,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Due.pharmacy_id, Due.due_type_id, Due.year],
        set_={name: stmt.excluded[name] for name in _UPSERT_UPDATE_COLUMNS},
    ).returning(Due.id)
    due_id = db.execute(stmt).scalar_one()
    due = _lock_due(db, due_id)
    _recalculate_due_totals(due)
    db.commit()
    db.refresh(due)
    return due


def _safe_upsert(db: Session, pharmacy_id, year: int, **fields) -> tuple[Due | None, str | None]:
    """Upsert one due, turning storage failures into an error message."""
    try:
        return upsert_due(db, pharmacy_id=pharmacy_id, **fields), None
    except IntegrityError:
        db.rollback()
        logger.warning(
            "Duplicate due for pharmacy %s year %s surfaced past upsert",
            pharmacy_id,
            year,
        )
        return None, _duplicate_message(year)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Due assignment failed for pharmacy %s: %s", pharmacy_id, exc)
        return None, "Failed to assign due"


def _error_item(pharmacy_id, error: str) -> dict:
    return {"pharmacy_id": str(pharmacy_id), "error": error}


class DueAssignments:
    @staticmethod
    def assign_individual(
        db: Session,
        pharmacy_id: str,
        payload: DueIndividualAssign,
        assigned_by=None,
    ) -> Due:
        pharmacy = _validate_pharmacy(db, pharmacy_id)
        _validate_due_type(db, payload.due_type_id)
        year = payload.due_date.year
        frequency = payload.recurring_frequency if payload.is_recurring else None
        try:
            due = upsert_due(
                db,
                pharmacy_id=pharmacy.id,
                due_type_id=payload.due_type_id,
                title=payload.title or f"Individual Due - {year}",
                description=payload.description,
                amount=payload.amount,
                due_date=payload.due_date,
                assignment_type=DueAssignmentType.individual,
                assigned_by=coerce_uuid(assigned_by),
                is_recurring=payload.is_recurring,
                recurring_frequency=frequency,
            )
        except IntegrityError as exc:
            db.rollback()
            raise HTTPException(
                status_code=400,
                detail={"code": "due_already_exists", "message": _duplicate_message(year)},
            ) from exc
        if frequency is not None:
            DueAssignments._generate_recurring(
                db, pharmacy.id, payload, frequency, coerce_uuid(assigned_by)
            )
            db.refresh(due)
        logger.info("Assigned due %s to pharmacy %s", due.id, pharmacy.id)
        return due

    @staticmethod
    def _generate_recurring(
        db: Session,
        pharmacy_id: uuid.UUID,
        payload: DueIndividualAssign,
        frequency: RecurringFrequency,
        assigned_by: uuid.UUID | None,
    ) -> list[Due]:
        """Upsert future instances of a recurring due.

        Instances that land in a year already covered are skipped, since
        they would overwrite the due for that year.
        """
        created: list[Due] = []
        seen_years = {payload.due_date.year}
        for next_date in _recurring_dates(payload.due_date, frequency):
            if next_date.year in seen_years:
                continue
            seen_years.add(next_date.year)
            due, error = _safe_upsert(
                db,
                pharmacy_id,
                next_date.year,
                due_type_id=payload.due_type_id,
                title=f"{payload.title or 'Recurring Due'} - {next_date.year}",
                description=payload.description,
                amount=payload.amount,
                due_date=next_date,
                assignment_type=DueAssignmentType.individual,
                assigned_by=assigned_by,
                is_recurring=True,
                recurring_frequency=frequency,
            )
            if error:
                logger.warning(
                    "Skipped recurring due for pharmacy %s year %s: %s",
                    pharmacy_id,
                    next_date.year,
                    error,
                )
                continue
            created.append(due)
        return created

    @staticmethod
    def assign(db: Session, payload: DueAssignRequest, assigned_by=None) -> dict:
        missing = [
            name
            for name in ("due_type_id", "title", "amount", "due_date", "assignment_type")
            if getattr(payload, name) in (None, "")
        ]
        if missing:
            raise HTTPException(
                status_code=400,
                detail=f"Please provide all required fields: {', '.join(missing)}",
            )
        assignment_type = validate_enum(
            payload.assignment_type, DueAssignmentType, "assignment_type"
        )
        _validate_due_type(db, payload.due_type_id)

        if assignment_type == DueAssignmentType.bulk:
            pharmacy_ids = [
                row.id
                for row in db.query(Pharmacy.id)
                .filter(Pharmacy.registration_status == RegistrationStatus.active)
                .order_by(Pharmacy.created_at.asc())
                .all()
            ]
        else:
            if not payload.pharmacy_ids:
                raise HTTPException(
                    status_code=400,
                    detail="Please provide pharmacy IDs for individual assignment",
                )
            pharmacy_ids = list(payload.pharmacy_ids)

        year = payload.due_date.year
        frequency = payload.recurring_frequency if payload.is_recurring else None
        dues: list[Due] = []
        error_details: list[dict] = []
        for pharmacy_id in pharmacy_ids:
            if not db.get(Pharmacy, pharmacy_id):
                error_details.append(_error_item(pharmacy_id, "Pharmacy not found"))
                continue
            due, error = _safe_upsert(
                db,
                pharmacy_id,
                year,
                due_type_id=payload.due_type_id,
                title=payload.title,
                description=payload.description,
                amount=payload.amount,
                due_date=payload.due_date,
                assignment_type=assignment_type,
                assigned_by=coerce_uuid(assigned_by),
                is_recurring=payload.is_recurring,
                recurring_frequency=frequency,
            )
            if error:
                error_details.append(_error_item(pharmacy_id, error))
                continue
            dues.append(due)
        logger.info(
            "Due assignment (%s) for year %s: %s created, %s errors",
            assignment_type.value,
            year,
            len(dues),
            len(error_details),
        )
        return {
            "created": len(dues),
            "errors": len(error_details),
            "dues": dues,
            "error_details": error_details,
        }

    @staticmethod
    def bulk_assign(db: Session, payload: DueBulkAssignRequest, assigned_by=None) -> dict:
        if (
            payload.due_type_id is None
            or payload.amount is None
            or payload.due_date is None
            or not payload.pharmacy_ids
        ):
            raise HTTPException(
                status_code=400,
                detail="Please provide due type, amount, due date and pharmacy IDs",
            )
        _validate_due_type(db, payload.due_type_id)
        year = payload.due_date.year

        dues: list[Due] = []
        failed: list[dict] = []
        for raw_id in payload.pharmacy_ids:
            try:
                pharmacy_id = coerce_uuid(raw_id)
            except HTTPException:
                failed.append(_error_item(raw_id, "Pharmacy not found"))
                continue
            if not db.get(Pharmacy, pharmacy_id):
                failed.append(_error_item(raw_id, "Pharmacy not found"))
                continue
            due, error = _safe_upsert(
                db,
                pharmacy_id,
                year,
                due_type_id=payload.due_type_id,
                title=f"Bulk Assigned Due - {year}",
                description=payload.description,
                amount=payload.amount,
                due_date=payload.due_date,
                assignment_type=DueAssignmentType.bulk,
                assigned_by=coerce_uuid(assigned_by),
            )
            if error:
                failed.append(_error_item(raw_id, error))
                continue
            dues.append(due)
        if failed:
            logger.warning("Bulk assignment had %s failed pharmacies", len(failed))
        return {
            "count": len(dues),
            "data": dues,
            "failed_assignments": failed or None,
        }
