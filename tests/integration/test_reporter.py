"""Integration tests for the reconciliation report"""

import pytest
from datetime import datetime
from decimal import Decimal
from unittest.mock import patch
from sqlalchemy.exc import OperationalError
from billing_reconciler.domain.exceptions import PersistenceError
from billing_reconciler.domain.models import DocumentClass
from billing_reconciler.services.reporter import ReconciliationReporter, format_report, format_sync_outcome
from billing_reconciler.services.synchronizer import InvoiceSynchronizer
from tests.conftest import NOW, fixed_clock


def seed_collection(seed_invoice):
    seed_invoice("PRO-INV-20250102-001", 1000, payments=[(1000, datetime(2025, 1, 5))])
    seed_invoice("PRO-INV-20250102-002", 600, payments=[(600, datetime(2025, 1, 6))])
    seed_invoice("PRO-INV-20250102-003", 1000, payments=[(300, datetime(2025, 1, 6))])
    seed_invoice(
        "PRO-INV-20250102-004",
        1000,
        payments=[(250, datetime(2025, 1, 3))],
        installment_count=4,
        installment_amount=Decimal("250"),
    )
    seed_invoice("PRO-CLR-20250102-001", 400, document_class="clearance")


def test_report_groups_by_status_after_sync(db, seed_invoice):
    seed_collection(seed_invoice)
    InvoiceSynchronizer(db, clock=fixed_clock).sync_all()

    report = ReconciliationReporter(db, clock=fixed_clock).build_report()
    regular = report.collections[DocumentClass.REGULAR]
    statuses = {summary.status: summary for summary in regular.statuses}

    assert report.generated_at == NOW
    assert regular.invoice_count == 4
    assert statuses["PAID"].count == 2
    assert statuses["PAID"].total == Decimal("1600.00")
    assert statuses["PAID"].remaining_amount == Decimal("0.00")
    assert statuses["PARTIAL"].amount_paid == Decimal("300.00")
    assert statuses["INSTALLMENT"].remaining_amount == Decimal("750.00")


def test_report_lists_installment_invoices(db, seed_invoice):
    seed_collection(seed_invoice)
    InvoiceSynchronizer(db, clock=fixed_clock).sync_all()

    report = ReconciliationReporter(db, clock=fixed_clock).build_report([DocumentClass.REGULAR])
    installments = report.collections[DocumentClass.REGULAR].installment_invoices

    assert list(report.collections) == [DocumentClass.REGULAR]
    assert len(installments) == 1
    assert installments[0].invoice_number == "PRO-INV-20250102-004"
    assert installments[0].installments_paid == 1
    assert installments[0].next_installment_date == datetime(2025, 2, 3)


def test_report_covers_clearance_separately(db, seed_invoice):
    seed_collection(seed_invoice)

    report = ReconciliationReporter(db, clock=fixed_clock).build_report()
    clearance = report.collections[DocumentClass.CLEARANCE]

    assert clearance.invoice_count == 1
    assert [summary.status for summary in clearance.statuses] == ["PENDING"]


def test_empty_collection_reports_zero(db):
    report = ReconciliationReporter(db, clock=fixed_clock).build_report()

    for collection in report.collections.values():
        assert collection.invoice_count == 0
        assert collection.statuses == []
        assert collection.installment_invoices == []


def test_format_report_renders_sections(db, seed_invoice):
    seed_collection(seed_invoice)
    InvoiceSynchronizer(db, clock=fixed_clock).sync_all()

    text = format_report(ReconciliationReporter(db, clock=fixed_clock).build_report())

    assert text.startswith("Payment report generated at 2025-01-20T12:00:00")
    assert "Regular invoices (4)" in text
    assert "Clearance invoices (1)" in text
    assert "PRO-INV-20250102-004: 1/4 of 250.00, next 2025-02-03" in text


def test_format_sync_outcome_lists_changes_and_errors(db, seed_invoice):
    seed_invoice("PRO-INV-20250102-001", 1000, payments=[(300, datetime(2025, 1, 5))])
    seed_invoice("PRO-INV-20250102-002", 1000, payments=[(-1, datetime(2025, 1, 5))])

    outcome = InvoiceSynchronizer(db, clock=fixed_clock).sync_collection(DocumentClass.REGULAR)
    lines = format_sync_outcome(outcome)

    assert lines[0] == "Regular invoices: 1 updated, 0 unchanged, 1 errors"
    assert "PRO-INV-20250102-001: paid 0.00 -> 300.00" in lines[1]
    assert lines[2].startswith("  ! PRO-INV-20250102-002:")


def test_store_failure_surfaces_as_persistence_error(db):
    reporter = ReconciliationReporter(db, clock=fixed_clock)

    with patch.object(db, "query", side_effect=OperationalError("SELECT", {}, Exception("server closed the connection"))):
        with pytest.raises(PersistenceError):
            reporter.build_report()
