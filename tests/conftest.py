"""Shared test fixtures for the DocVault test suite.

Tests run against a throwaway SQLite file by default; point
TEST_DATABASE_URL at a PostgreSQL database to run them there instead.
Each test starts from empty tables. Blob storage is an in-memory dict.
"""

import os
import tempfile

# Configure the app before any docvault import reads the environment.
_DB_DIR = tempfile.mkdtemp(prefix="docvault-test-")
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL", f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
)
os.environ["AUTH_ENABLED"] = "true"
os.environ["LOG_FORMAT"] = "text"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["EDITOR_JWT_SECRET"] = "test-editor-secret"
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ["RATE_LIMIT_BACKEND"] = "memory"

import hashlib
import uuid
from typing import Dict, Iterator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from docvault.core.auth import Principal
from docvault.core.config import settings
from docvault.core.rate_limit import MemoryRateLimitStore, RateLimiter
from docvault.core.token_factory import create_token
from docvault.database import SessionLocal, get_db
from docvault.exceptions import StorageError
from docvault.main import app
from docvault.models import Company, CompanyShare, Document, Folder, User
from docvault.models.enums import PermissionLevel, Role, ShareStatus
from docvault.services.folder_service import compute_path
from docvault.services.storage_service import build_storage_key, get_blob_store

# Child tables first so foreign keys never block the wipe.
_TABLES = [
    "audit_log",
    "delivery_tokens",
    "document_shares",
    "documents",
    "folders",
    "company_shares",
    "companies",
    "users",
]


class InMemoryBlobStore:
    """BlobStore backed by a dict, with a switch to simulate outages."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.fail = False

    def get_object_stream(self, key: str) -> Iterator[bytes]:
        if self.fail or key not in self.objects:
            raise StorageError("Object not available", key=key)
        data = self.objects[key]
        return iter([data[i:i + 4] for i in range(0, len(data), 4)] or [b""])

    def get_presigned_url(self, key: str, ttl_seconds: int) -> str:
        return f"http://blobs.test/{key}?expires={ttl_seconds}"

    def put_object(self, key: str, data: bytes, content_type: str) -> None:
        if self.fail:
            raise StorageError("Upload failed", key=key)
        self.objects[key] = data
        self.content_types[key] = content_type

    def delete_object(self, key: str) -> None:
        self.objects.pop(key, None)
        self.content_types.pop(key, None)


@pytest.fixture(autouse=True)
def _clean_tables():
    """Empty every table before each test.

    Runs before the test (not after) so a failing test leaves its data
    behind for inspection.
    """
    db = SessionLocal()
    try:
        for table in _TABLES:
            db.execute(text(f"DELETE FROM {table}"))
        db.commit()
    finally:
        db.close()
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture()
def client(db, blob_store):
    """TestClient sharing the test session and blob store, with fresh limiters."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.state.rate_limiter = RateLimiter(
        MemoryRateLimitStore(), settings.rate_limit_per_minute, scope="general"
    )
    app.state.delivery_rate_limiter = RateLimiter(
        MemoryRateLimitStore(), settings.delivery_rate_limit_per_minute, scope="delivery"
    )
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def principal_of(user: User) -> Principal:
    return Principal(user_id=user.id, role=Role(user.role))


def headers_for(user: User) -> dict:
    """Bearer headers for *user*, signed with the configured secret."""
    token = create_token(
        subject=user.id,
        role=Role(user.role).value,
        secret=settings.jwt_secret_key,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def make_user(db):
    def _make(role: Role = Role.EMPLOYEE, name: Optional[str] = None) -> User:
        uid = str(uuid.uuid4())
        user = User(
            id=uid,
            display_name=name or f"user-{uid[:6]}",
            email=f"{uid[:8]}@example.com",
            password_hash="",
            role=role,
            is_active=True,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture()
def make_company(db):
    def _make(owner: User, name: str = "Acme") -> Company:
        company = Company(id=str(uuid.uuid4()), name=name, owner_id=owner.id)
        db.add(company)
        db.commit()
        return company

    return _make


@pytest.fixture()
def make_folder(db):
    def _make(company: Company, name: str, parent: Optional[Folder] = None) -> Folder:
        folder = Folder(
            id=str(uuid.uuid4()),
            company_id=company.id,
            parent_id=parent.id if parent else None,
            name=name,
            path=compute_path(parent, name),
        )
        db.add(folder)
        db.commit()
        return folder

    return _make


@pytest.fixture()
def make_document(db, blob_store):
    def _make(
        company: Company,
        uploader: User,
        folder: Optional[Folder] = None,
        name: str = "report.pdf",
        data: bytes = b"%PDF-1.4 quarterly numbers",
        mime_type: str = "application/pdf",
    ) -> Document:
        key = build_storage_key(company.id, folder.id if folder else None, name)
        blob_store.put_object(key, data, mime_type)
        document = Document(
            id=str(uuid.uuid4()),
            company_id=company.id,
            folder_id=folder.id if folder else None,
            name=name,
            original_name=name,
            mime_type=mime_type,
            file_size=len(data),
            checksum=hashlib.sha256(data).hexdigest(),
            storage_key=key,
            version=1,
            is_latest_version=True,
            uploaded_by_id=uploader.id,
        )
        db.add(document)
        db.commit()
        return document

    return _make


@pytest.fixture()
def make_company_share(db):
    def _make(
        company: Company,
        user: User,
        level: PermissionLevel = PermissionLevel.VIEW,
        status: ShareStatus = ShareStatus.ACTIVE,
        valid_until=None,
    ) -> CompanyShare:
        share = CompanyShare(
            id=str(uuid.uuid4()),
            company_id=company.id,
            shared_with_user_id=user.id,
            shared_by_user_id=company.owner_id,
            permission_level=level,
            status=status,
            valid_until=valid_until,
        )
        db.add(share)
        db.commit()
        return share

    return _make


@pytest.fixture()
def auth_headers():
    """``auth_headers(user)`` -> Bearer headers."""
    return headers_for


@pytest.fixture()
def as_principal():
    """``as_principal(user)`` -> Principal for service-level tests."""
    return principal_of
