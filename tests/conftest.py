"""Pytest configuration and shared fixtures."""

import os
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

# Point settings at an in-memory database BEFORE importing the app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["LOG_FILE"] = ""
os.environ["JWT_SECRET"] = "test-secret"

from rab_ledger.config import settings
from rab_ledger.main import app
from rab_ledger.models import Base
from rab_ledger.models.program import MemberRole, ProgramStatus
from rab_ledger.models.user import UserRole
from rab_ledger.services import SessionLocal, engine, get_db
from rab_ledger.services.auth_service import RequestContext, create_access_token, create_user
from rab_ledger.services.program_service import ProgramService
from rab_ledger.services.rab_service import RabService
from rab_ledger.services.receipt_service import UploadedFile

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def build_receipt(filename: str = "nota.png", content_type: str = "image/png") -> UploadedFile:
    """Build a small valid receipt upload."""
    return UploadedFile(filename=filename, content_type=content_type, content=PNG_BYTES)


def auth_headers(user) -> dict:
    token, _ = create_access_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_receipt():
    """Factory for receipt uploads."""
    return build_receipt


@pytest.fixture
def headers_for():
    """Factory for bearer headers of a user."""
    return auth_headers


@pytest.fixture(autouse=True)
def receipts_dir(tmp_path, monkeypatch):
    """Store receipts under a per-test temporary directory."""
    path = tmp_path / "receipts"
    monkeypatch.setattr(settings, "receipts_dir", path)
    return path


@pytest.fixture(scope="function")
def db_session():
    """Provide a database session with all tables created."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db

    yield session

    session.close()
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    """Provide a FastAPI test client bound to the test session."""
    return TestClient(app)


@pytest.fixture
def admin_user(db_session):
    return create_user(
        db_session, "Admin Satu", "admin@example.org", "admin-password", UserRole.ADMIN
    )


@pytest.fixture
def member_user(db_session):
    return create_user(db_session, "Budi Anggota", "budi@example.org", "member-password")


@pytest.fixture
def outsider_user(db_session):
    return create_user(db_session, "Orang Luar", "luar@example.org", "outsider-password")


@pytest.fixture
def admin_ctx(admin_user) -> RequestContext:
    return RequestContext.for_user(admin_user)


@pytest.fixture
def member_ctx(member_user) -> RequestContext:
    return RequestContext.for_user(member_user)


@pytest.fixture
def admin_headers(admin_user) -> dict:
    return auth_headers(admin_user)


@pytest.fixture
def member_headers(member_user) -> dict:
    return auth_headers(member_user)


@pytest.fixture
def draft_program(db_session, admin_ctx, member_user):
    """A draft program with the member on its roster."""
    service = ProgramService(db_session)
    program = service.create_program(
        admin_ctx, "Bakti Sosial 2026", date(2026, 1, 1), date(2026, 12, 31)
    )
    service.add_member(admin_ctx, program.id, member_user.id, MemberRole.ANGGOTA)
    return program


@pytest.fixture
def rab_item(db_session, admin_ctx, draft_program):
    """A RAB item with a total budget of 1,000,000."""
    return RabService(db_session).create_category(
        admin_ctx,
        draft_program.id,
        name="Konsumsi",
        volume=Decimal("100"),
        unit_price=Decimal("10000"),
        category="konsumsi",
        unit="paket",
    )


@pytest.fixture
def active_program(db_session, admin_ctx, draft_program, rab_item):
    """The draft program activated after its RAB was planned."""
    return ProgramService(db_session).change_status(
        admin_ctx, draft_program.id, ProgramStatus.ACTIVE
    )


@pytest.fixture
def submit_claim(db_session):
    """Factory that submits a pending claim with one receipt."""
    from rab_ledger.services.ledger_service import LedgerService

    def submit(ctx, program, item, amount, description="Belanja konsumsi"):
        return LedgerService(db_session).submit_expense_claim(
            ctx,
            program.id,
            item.id,
            Decimal(amount),
            description,
            date(2026, 2, 1),
            [build_receipt()],
        )

    return submit
