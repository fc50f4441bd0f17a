"""Pytest fixtures for testing"""

import pytest
from datetime import datetime
from decimal import Decimal
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from billing_reconciler.api.dependencies import get_clock
from billing_reconciler.api.main import create_app
from billing_reconciler.infrastructure.database import models
from billing_reconciler.infrastructure.database.models import Base
from billing_reconciler.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Fixed "now" for deterministic overdue and installment behaviour
NOW = datetime(2025, 1, 20, 12, 0, 0)


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database and fixed clock"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: fixed_clock
    return TestClient(app)


@pytest.fixture
def seed_invoice(db: Session) -> Callable:
    """
    Insert an invoice with payments.

    Stored derived fields default to a freshly created invoice (nothing paid),
    so any payment makes the stored state stale until a sync run.
    """

    def _seed(
        invoice_number: str,
        total,
        payments=(),
        due_date: datetime = datetime(2025, 6, 30),
        document_class: str = "regular",
        created_at: datetime = datetime(2025, 1, 2, 9, 0),
        **stored,
    ):
        model, payment_model = (
            (models.Invoice, models.Payment)
            if document_class == "regular"
            else (models.ClearanceInvoice, models.ClearancePayment)
        )
        invoice = model(
            invoice_number=invoice_number,
            total=Decimal(str(total)),
            due_date=due_date,
            payment_status=stored.pop("payment_status", "PENDING"),
            amount_paid=Decimal(str(stored.pop("amount_paid", 0))),
            remaining_amount=Decimal(str(stored.pop("remaining_amount", total))),
            installments_paid=stored.pop("installments_paid", 0),
            created_at=created_at,
            **stored,
        )
        invoice.payments = [
            payment_model(amount=Decimal(str(amount)), payment_date=payment_date)
            for amount, payment_date in payments
        ]
        db.add(invoice)
        db.commit()
        return invoice

    return _seed
