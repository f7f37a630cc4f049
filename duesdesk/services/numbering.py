"""Named counters and the human-readable numbers built from them."""

import uuid

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from duesdesk.config import settings
from duesdesk.models.sequence import SequenceCounter

REGISTRATION_SEQUENCE_KEY = "pharmacy_registration"
CERTIFICATE_SEQUENCE_KEY = "clearance_certificate"


def dialect_insert(db: Session, model):
    """Return the dialect-specific insert construct that supports ON CONFLICT."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    raise ValueError(f"Unsupported database dialect for upserts: {dialect}")


def format_number(prefix: str | None, padding: int | None, value: int) -> str:
    prefix_value = prefix or ""
    pad = max(int(padding or 0), 0)
    if pad > 0:
        return f"{prefix_value}{value:0{pad}d}"
    return f"{prefix_value}{value}"


def next_value(db: Session, key: str, start: int = 1) -> int:
    """Atomically increment the counter for key and return the new value.

    The first call for a key returns ``start``. Concurrent callers never
    observe the same value because the increment happens inside the
    database's conflict clause.
    """
    stmt = (
        dialect_insert(db, SequenceCounter)
        .values(id=uuid.uuid4(), key=key, value=start)
        .on_conflict_do_update(
            index_elements=[SequenceCounter.key],
            set_={
                "value": SequenceCounter.value + 1,
                "updated_at": func.now(),
            },
        )
        .returning(SequenceCounter.value)
    )
    value = db.execute(stmt).scalar_one()
    db.flush()
    return int(value)


def next_registration_number(db: Session) -> str:
    value = next_value(db, REGISTRATION_SEQUENCE_KEY)
    return format_number(
        settings.registration_number_prefix,
        settings.registration_number_padding,
        value,
    )


def next_certificate_number(db: Session) -> str:
    value = next_value(db, CERTIFICATE_SEQUENCE_KEY)
    return format_number(
        settings.certificate_number_prefix,
        settings.certificate_number_padding,
        value,
    )
