import io
import os
import sqlite3
import uuid
from datetime import UTC, datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.datastructures import Headers, UploadFile

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.pop("S3_ACCESS_KEY", None)
os.environ.pop("S3_SECRET_KEY", None)

# Register UUID adapter for SQLite - store as string
sqlite3.register_adapter(uuid.UUID, lambda u: str(u))

# Monkey-patch SQLAlchemy's UUID type for SQLite compatibility
# This must happen before any models are imported
from sqlalchemy.sql import sqltypes

_original_uuid_bind_processor = sqltypes.Uuid.bind_processor
_original_uuid_result_processor = sqltypes.Uuid.result_processor


def _sqlite_uuid_bind_processor(self, dialect):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return str(value)
                return str(uuid.UUID(value)) if value else None
            return None
        return process
    return _original_uuid_bind_processor(self, dialect)


def _sqlite_uuid_result_processor(self, dialect, coltype):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return value
                return uuid.UUID(value) if value else None
            return None
        return process
    return _original_uuid_result_processor(self, dialect, coltype)


setattr(sqltypes.Uuid, "bind_processor", _sqlite_uuid_bind_processor)
setattr(sqltypes.Uuid, "result_processor", _sqlite_uuid_result_processor)

from duesdesk.db import Base
from duesdesk.models import DueAssignmentType, DueType, Pharmacy, RegistrationStatus
from duesdesk.services import receipt_storage
from duesdesk.services.dues.assignments import upsert_due
from duesdesk.services.object_storage import S3StorageService


@pytest.fixture(scope="session")
def engine():
    database_url = os.getenv("TEST_DATABASE_URL")
    if database_url:
        engine = create_engine(database_url)
    else:
        engine = create_engine(
            "sqlite+pysqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    Base.metadata.create_all(engine)

    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


class _ClientError(Exception):
    def __init__(self, code: str):
        super().__init__(code)
        self.response = {"Error": {"Code": code}}


class _FakeS3Client:
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.created_bucket = False
        self.bucket_exists = True
        self.fail_with: str | None = None

    def _maybe_fail(self):
        if self.fail_with:
            raise _ClientError(self.fail_with)

    def head_bucket(self, Bucket: str):
        self._maybe_fail()
        if self.bucket_exists:
            return {}
        raise _ClientError("404")

    def create_bucket(self, **kwargs):
        self.created_bucket = True

    def put_object(self, Bucket: str, Key: str, Body: bytes, ContentType: str | None = None):
        self._maybe_fail()
        self.objects[Key] = Body
        if ContentType:
            self.content_types[Key] = ContentType

    def delete_object(self, Bucket: str, Key: str):
        self._maybe_fail()
        self.objects.pop(Key, None)


@pytest.fixture()
def fake_s3():
    return _FakeS3Client()


@pytest.fixture()
def s3_storage(fake_s3):
    return S3StorageService(
        "receipts",
        "http://minio:9000",
        "a",
        "b",
        "us-east-1",
        client=fake_s3,
    )


@pytest.fixture()
def failing_s3_storage():
    fake = _FakeS3Client()
    fake.fail_with = "ServiceUnavailable"
    return S3StorageService(
        "receipts",
        "http://minio:9000",
        "a",
        "b",
        "us-east-1",
        client=fake,
    )


@pytest.fixture(autouse=True)
def receipt_dir(tmp_path, monkeypatch):
    """Point local receipt fallback writes at a per-test directory."""
    upload_dir = tmp_path / "receipts"
    monkeypatch.setattr(
        receipt_storage,
        "settings",
        receipt_storage.settings.model_copy(
            update={"receipt_upload_dir": str(upload_dir)}
        ),
    )
    return upload_dir


def _make_receipt(
    data: bytes = b"%PDF-1.4 receipt",
    content_type: str = "application/pdf",
    filename: str = "receipt.pdf",
) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.fixture()
def make_receipt():
    return _make_receipt


@pytest.fixture()
def admin_id():
    return uuid.uuid4()


@pytest.fixture()
def owner_id():
    return uuid.uuid4()


def _pharmacy(name: str, number: str, status=RegistrationStatus.active, owner=None):
    return Pharmacy(
        name=name,
        registration_number=number,
        location="Ikeja",
        registration_status=status,
        owner_id=owner,
    )


@pytest.fixture()
def pharmacy(db_session, owner_id):
    pharmacy = _pharmacy("Greenleaf Pharmacy", f"T-{uuid.uuid4().hex[:8]}", owner=owner_id)
    db_session.add(pharmacy)
    db_session.commit()
    db_session.refresh(pharmacy)
    return pharmacy


@pytest.fixture()
def other_pharmacy(db_session):
    pharmacy = _pharmacy("Riverside Chemists", f"T-{uuid.uuid4().hex[:8]}")
    db_session.add(pharmacy)
    db_session.commit()
    db_session.refresh(pharmacy)
    return pharmacy


@pytest.fixture()
def pending_pharmacy(db_session):
    pharmacy = _pharmacy(
        "Awaiting Approval Pharmacy",
        f"T-{uuid.uuid4().hex[:8]}",
        status=RegistrationStatus.pending,
    )
    db_session.add(pharmacy)
    db_session.commit()
    db_session.refresh(pharmacy)
    return pharmacy


@pytest.fixture()
def due_type(db_session):
    due_type = DueType(name=f"Annual Dues {uuid.uuid4().hex[:6]}", default_amount=Decimal("50000.00"))
    db_session.add(due_type)
    db_session.commit()
    db_session.refresh(due_type)
    return due_type


@pytest.fixture()
def due_date():
    return datetime(2025, 3, 31, tzinfo=UTC)


@pytest.fixture()
def due(db_session, pharmacy, due_type, due_date, admin_id):
    """A 1000.00 due for 2025 assigned through the upsert path."""
    return upsert_due(
        db_session,
        pharmacy_id=pharmacy.id,
        due_type_id=due_type.id,
        title="Annual Dues - 2025",
        description=None,
        amount=Decimal("1000.00"),
        due_date=due_date,
        assignment_type=DueAssignmentType.individual,
        assigned_by=admin_id,
    )
