from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from duesdesk.models.pharmacy import RegistrationStatus


class PharmacyBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    location: str | None = Field(default=None, max_length=200)
    address: str | None = Field(default=None, max_length=255)
    registration_status: RegistrationStatus = RegistrationStatus.pending
    owner_id: UUID | None = None


class PharmacyCreate(PharmacyBase):
    pass


class PharmacyRead(PharmacyBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    registration_number: str
    registered_at: datetime
    created_at: datetime
    updated_at: datetime
