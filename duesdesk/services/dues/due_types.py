"""Due type catalogue."""

import logging

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from duesdesk.models.due import DueType
from duesdesk.schemas.due import DueTypeCreate, DueTypeUpdate
from duesdesk.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_or_404,
)
from duesdesk.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class DueTypes(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: DueTypeCreate, created_by=None) -> DueType:
        name = payload.name.strip()
        existing = db.query(DueType).filter(DueType.name == name).first()
        if existing:
            raise HTTPException(status_code=400, detail="Due type already exists")
        data = payload.model_dump()
        data["name"] = name
        due_type = DueType(**data, created_by=coerce_uuid(created_by))
        db.add(due_type)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise HTTPException(status_code=400, detail="Due type already exists") from exc
        db.refresh(due_type)
        logger.info("Created due type %s", due_type.name)
        return due_type

    @staticmethod
    def get(db: Session, due_type_id: str) -> DueType:
        return get_or_404(db, DueType, due_type_id, detail="Due type not found")

    @staticmethod
    def update(db: Session, due_type_id: str, payload: DueTypeUpdate) -> DueType:
        due_type = get_or_404(db, DueType, due_type_id, detail="Due type not found")
        data = payload.model_dump(exclude_unset=True)
        if data.get("name") is not None:
            data["name"] = data["name"].strip()
            duplicate = (
                db.query(DueType.id)
                .filter(DueType.name == data["name"])
                .filter(DueType.id != due_type.id)
                .first()
            )
            if duplicate:
                raise HTTPException(status_code=400, detail="Due type already exists")
        is_recurring = data.get("is_recurring")
        if is_recurring is None:
            is_recurring = due_type.is_recurring
        period = data.get("recurring_period", due_type.recurring_period)
        if is_recurring and period is None:
            raise HTTPException(
                status_code=400,
                detail="recurring_period is required for recurring due types",
            )
        if not is_recurring:
            data["recurring_period"] = None
        for key, value in data.items():
            if value is None and key in {"name", "default_amount", "is_recurring", "is_active"}:
                continue
            setattr(due_type, key, value)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise HTTPException(status_code=400, detail="Due type already exists") from exc
        db.refresh(due_type)
        logger.info("Updated due type %s", due_type.id)
        return due_type

    @staticmethod
    def delete(db: Session, due_type_id: str) -> None:
        """Retire a due type.

        The row is kept inactive so dues already assigned under it keep
        their type.
        """
        due_type = get_or_404(db, DueType, due_type_id, detail="Due type not found")
        due_type.is_active = False
        db.commit()
        logger.info("Deactivated due type %s", due_type.id)

    @staticmethod
    def list(
        db: Session,
        is_active: bool | None = None,
        order_by: str = "name",
        order_dir: str = "asc",
        limit: int = 50,
        offset: int = 0,
    ):
        query = db.query(DueType)
        if is_active is not None:
            query = query.filter(DueType.is_active == is_active)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"name": DueType.name, "created_at": DueType.created_at},
        )
        return apply_pagination(query, limit, offset).all()
