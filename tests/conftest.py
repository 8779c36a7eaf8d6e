"""
PayPortal — Shared pytest fixtures.
"""

from __future__ import annotations

import os
import secrets
from typing import Dict, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# ─── Environment setup (before any app imports) ───────────────────────────────

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", secrets.token_hex(32))
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("SETTLEMENT_CALLBACK_SECRET", "test-settlement-secret")

# ─── App imports (after env is set) ───────────────────────────────────────────

from payportal.core.security import (  # noqa: E402
    ROLE_CUSTOMER,
    ROLE_EMPLOYEE,
    Principal,
    create_access_token,
)
from payportal.database import Base, build_engine  # noqa: E402
from payportal.models import payments, users  # noqa: E402,F401
from payportal.services.payment_service import PaymentService  # noqa: E402
from payportal.services.settlement import MockSettlementGateway  # noqa: E402

CUSTOMER_ID = "cust_001"
OTHER_CUSTOMER_ID = "cust_002"
VERIFIER_ID = "emp_001"
RELEASER_ID = "emp_002"

# ─────────────────────────────────────────────────────────────────────────────
# DATABASE FIXTURES
# ─────────────────────────────────────────────────────────────────────────────


def _make_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def set_pragmas(dbapi_conn, _):
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """In-memory SQLite session — fresh for every test function."""
    engine = _make_engine()
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture(scope="function")
def file_session_factory(tmp_path):
    """File-backed SQLite sessionmaker — each thread gets its own connection."""
    engine = build_engine(f"sqlite:///{tmp_path / 'payportal.db'}")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield factory
    engine.dispose()


# ─────────────────────────────────────────────────────────────────────────────
# PRINCIPALS & SERVICES
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def customer() -> Principal:
    return Principal(id=CUSTOMER_ID, role=ROLE_CUSTOMER, account_number="1234567890")


@pytest.fixture
def other_customer() -> Principal:
    return Principal(id=OTHER_CUSTOMER_ID, role=ROLE_CUSTOMER, account_number="9876543210")


@pytest.fixture
def verifier() -> Principal:
    return Principal(id=VERIFIER_ID, role=ROLE_EMPLOYEE)


@pytest.fixture
def releaser() -> Principal:
    return Principal(id=RELEASER_ID, role=ROLE_EMPLOYEE)


@pytest.fixture
def gateway() -> MockSettlementGateway:
    return MockSettlementGateway()


@pytest.fixture
def service(db_session, gateway) -> PaymentService:
    return PaymentService(db_session, gateway)


@pytest.fixture
def payment_fields() -> Dict[str, str]:
    return {
        "amount": "100.00",
        "currency": "USD",
        "payee_account_number": "1234567890",
        "payee_account_name": "Jan de Vries",
        "payee_bank_name": "ABN AMRO Bank",
        "swift_code": "abnanl2a",
    }


@pytest.fixture
def pending_payment(service, customer, payment_fields):
    return service.create_payment(customer, payment_fields)


@pytest.fixture
def verified_payment(service, customer, verifier, payment_fields):
    payment = service.create_payment(customer, payment_fields)
    return service.verify_payment(verifier, payment.id)


# ─────────────────────────────────────────────────────────────────────────────
# FASTAPI CLIENT FIXTURE
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(scope="function")
def client(db_session: Session, gateway) -> Generator[TestClient, None, None]:
    """FastAPI TestClient with overridden DB and settlement dependencies."""
    from payportal.api.v1.payments import get_settlement_gateway
    from payportal.database import get_db
    from payportal.main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settlement_gateway] = lambda: gateway

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# ─────────────────────────────────────────────────────────────────────────────
# JWT HEADER HELPERS
# ─────────────────────────────────────────────────────────────────────────────


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers() -> Dict[str, str]:
    return bearer(create_access_token(CUSTOMER_ID, ROLE_CUSTOMER, account_number="1234567890"))


@pytest.fixture
def other_customer_headers() -> Dict[str, str]:
    return bearer(
        create_access_token(OTHER_CUSTOMER_ID, ROLE_CUSTOMER, account_number="9876543210")
    )


@pytest.fixture
def verifier_headers() -> Dict[str, str]:
    return bearer(create_access_token(VERIFIER_ID, ROLE_EMPLOYEE))


@pytest.fixture
def releaser_headers() -> Dict[str, str]:
    return bearer(create_access_token(RELEASER_ID, ROLE_EMPLOYEE))
