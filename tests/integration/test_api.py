"""Integration tests for API endpoints"""

import uuid
import pytest
from datetime import datetime
from decimal import Decimal
from unittest.mock import patch
from fastapi.testclient import TestClient
from billing_reconciler.domain.exceptions import PersistenceError
from billing_reconciler.infrastructure.database import models
from billing_reconciler.infrastructure.database.repositories import InvoiceRepository


@pytest.fixture
def partially_paid(seed_invoice):
    """Invoice with 300 of 1000 paid, stored fields not yet synced"""
    return seed_invoice("PRO-INV-20250102-001", 1000, payments=[(300, datetime(2025, 1, 5))])


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "billing_invoices_reconciled_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_sync_endpoint_corrects_and_reports(client: TestClient, db, partially_paid, seed_invoice):
    """Test POST /v1/sync reconciles and returns the report"""
    seed_invoice("PRO-CLR-20250102-001", 500, payments=[(500, datetime(2025, 1, 5))], document_class="clearance")

    response = client.post("/v1/sync")

    assert response.status_code == 200
    data = response.json()
    assert [o["document_class"] for o in data["outcomes"]] == ["regular", "clearance"]
    assert all(o["updated_count"] == 1 for o in data["outcomes"])

    regular = data["report"]["collections"][0]
    assert regular["statuses"][0]["status"] == "PARTIAL"
    assert Decimal(regular["statuses"][0]["remaining_amount"]) == Decimal("700")

    stored = db.query(models.Invoice).one()
    assert stored.payment_status == "PARTIAL"


def test_sync_endpoint_single_class(client: TestClient, partially_paid):
    response = client.post("/v1/sync", params={"type": "clearance"})

    assert response.status_code == 200
    data = response.json()
    assert [o["document_class"] for o in data["outcomes"]] == ["clearance"]
    assert data["outcomes"][0]["updated_count"] == 0


def test_sync_endpoint_rejects_unknown_type(client: TestClient):
    response = client.post("/v1/sync", params={"type": "receipts"})
    assert response.status_code == 422


def test_sync_endpoint_store_unavailable(client: TestClient):
    with patch.object(InvoiceRepository, "list_with_payments", side_effect=PersistenceError("connection refused")):
        response = client.post("/v1/sync")
    assert response.status_code == 503


def test_sync_status_is_read_only(client: TestClient, db, partially_paid):
    """Test GET /v1/sync/status counts drift without writing"""
    response = client.get("/v1/sync/status")

    assert response.status_code == 200
    data = response.json()
    assert data["needs_sync_count"] == 1
    assert all(o["dry_run"] for o in data["outcomes"])
    assert db.query(models.Invoice).one().payment_status == "PENDING"

    client.post("/v1/sync")
    assert client.get("/v1/sync/status").json()["needs_sync_count"] == 0


def test_payment_report_endpoint(client: TestClient, partially_paid):
    response = client.get("/v1/reports/payments")

    assert response.status_code == 200
    data = response.json()
    assert data["generated_at"] == "2025-01-20T12:00:00"
    assert [c["document_class"] for c in data["collections"]] == ["regular", "clearance"]
    assert data["collections"][0]["invoice_count"] == 1


def test_payment_preview_settling_amount(client: TestClient, partially_paid):
    """Test POST /v1/invoices/{class}/{id}/payment-preview"""
    response = client.post(
        f"/v1/invoices/regular/{partially_paid.id}/payment-preview",
        json={"amount": "700"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["invoice_number"] == "PRO-INV-20250102-001"
    assert data["current"]["payment_status"] == "PARTIAL"
    assert data["validation"]["is_valid"] is True
    assert data["preview"]["payment_status"] == "PAID"
    assert data["preview"]["is_fully_paid"] is True


def test_payment_preview_amount_above_remaining(client: TestClient, partially_paid):
    response = client.post(
        f"/v1/invoices/regular/{partially_paid.id}/payment-preview",
        json={"amount": 800},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["validation"]["is_valid"] is False
    assert data["preview"] is None


def test_payment_preview_not_found(client: TestClient):
    response = client.post(f"/v1/invoices/regular/{uuid.uuid4()}/payment-preview", json={"amount": 10})
    assert response.status_code == 404


def test_payment_preview_invalid_id(client: TestClient):
    response = client.post("/v1/invoices/regular/not-a-uuid/payment-preview", json={"amount": 10})
    assert response.status_code == 400


def test_payment_preview_unknown_document_class(client: TestClient, partially_paid):
    response = client.post(f"/v1/invoices/receipt/{partially_paid.id}/payment-preview", json={"amount": 10})
    assert response.status_code == 422


def test_payment_preview_corrupt_history(client: TestClient, seed_invoice):
    invoice = seed_invoice("PRO-INV-20250102-001", 1000, payments=[(-10, datetime(2025, 1, 5))])
    response = client.post(f"/v1/invoices/regular/{invoice.id}/payment-preview", json={"amount": 10})
    assert response.status_code == 422


def test_identifier_migration_endpoints(client: TestClient, seed_invoice):
    """Test migration status before and after POST /v1/identifiers/migrate"""
    seed_invoice("INV-1734000000001", 100, created_at=datetime(2024, 12, 24, 8, 0))

    status = client.get("/v1/identifiers/migration-status", params={"kind": "regular"}).json()
    assert status[0]["legacy_count"] == 1
    assert status[0]["needs_migration"] is True
    assert status[0]["samples"][0]["identifier"] == "INV-1734000000001"

    response = client.post("/v1/identifiers/migrate", params={"kind": "regular"})
    assert response.status_code == 200
    outcome = response.json()[0]
    assert outcome["success_count"] == 1
    assert outcome["details"][0]["new_identifier"] == "PRO-INV-20241224-001"

    status = client.get("/v1/identifiers/migration-status", params={"kind": "regular"}).json()
    assert status[0]["needs_migration"] is False


def test_identifier_migration_all_kinds(client: TestClient):
    response = client.get("/v1/identifiers/migration-status")

    assert response.status_code == 200
    assert [s["kind"] for s in response.json()] == ["regular", "clearance", "trip"]


def test_identifier_migration_rejects_unknown_kind(client: TestClient):
    response = client.post("/v1/identifiers/migrate", params={"kind": "receipt"})
    assert response.status_code == 422


def test_payment_report_store_unavailable(client: TestClient):
    with patch.object(InvoiceRepository, "count", side_effect=PersistenceError("connection refused")):
        response = client.get("/v1/reports/payments")
    assert response.status_code == 503


def test_installment_schedule_endpoint(client: TestClient, seed_invoice):
    """Test GET /v1/invoices/{class}/{id}/installments"""
    invoice = seed_invoice(
        "PRO-INV-20241115-001",
        1000,
        payments=[(500, datetime(2025, 1, 5))],
        installment_count=4,
        installment_amount=Decimal("250"),
        created_at=datetime(2024, 11, 15, 9, 0),
    )

    response = client.get(f"/v1/invoices/regular/{invoice.id}/installments")

    assert response.status_code == 200
    data = response.json()
    assert data["installment_count"] == 4
    assert data["installments_paid"] == 2
    installments = data["installments"]
    assert [i["due_date"] for i in installments] == [
        "2024-11-15T09:00:00",
        "2024-12-15T09:00:00",
        "2025-01-15T09:00:00",
        "2025-02-15T09:00:00",
    ]
    assert [i["is_paid"] for i in installments] == [True, True, False, False]
    assert [i["is_overdue"] for i in installments] == [False, False, True, False]
    assert sum(Decimal(i["amount"]) for i in installments) == Decimal("1000")


def test_installment_schedule_without_plan(client: TestClient, partially_paid):
    response = client.get(f"/v1/invoices/regular/{partially_paid.id}/installments")

    assert response.status_code == 200
    assert response.json()["installments"] == []


def test_installment_schedule_not_found(client: TestClient):
    response = client.get(f"/v1/invoices/clearance/{uuid.uuid4()}/installments")
    assert response.status_code == 404
