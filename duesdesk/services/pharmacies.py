"""Pharmacy registry."""

import logging

from sqlalchemy.orm import Session

from duesdesk.models.pharmacy import Pharmacy, RegistrationStatus
from duesdesk.schemas.pharmacy import PharmacyCreate
from duesdesk.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_or_404,
    validate_enum,
)
from duesdesk.services.numbering import next_registration_number
from duesdesk.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Pharmacies(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: PharmacyCreate) -> Pharmacy:
        pharmacy = Pharmacy(
            **payload.model_dump(),
            registration_number=next_registration_number(db),
        )
        db.add(pharmacy)
        db.commit()
        db.refresh(pharmacy)
        logger.info(
            "Registered pharmacy %s as %s", pharmacy.id, pharmacy.registration_number
        )
        return pharmacy

    @staticmethod
    def get(db: Session, pharmacy_id: str) -> Pharmacy:
        return get_or_404(db, Pharmacy, pharmacy_id, detail="Pharmacy not found")

    @staticmethod
    def list(
        db: Session,
        registration_status: str | None = None,
        owner_id: str | None = None,
        order_by: str = "name",
        order_dir: str = "asc",
        limit: int = 50,
        offset: int = 0,
    ):
        query = db.query(Pharmacy)
        if registration_status:
            query = query.filter(
                Pharmacy.registration_status
                == validate_enum(
                    registration_status, RegistrationStatus, "registration_status"
                )
            )
        if owner_id:
            query = query.filter(Pharmacy.owner_id == coerce_uuid(owner_id))
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "name": Pharmacy.name,
                "registration_number": Pharmacy.registration_number,
                "created_at": Pharmacy.created_at,
            },
        )
        return apply_pagination(query, limit, offset).all()


pharmacies = Pharmacies()
