"""Reconciliation reporter - grouped financial summaries of the corrected store"""

from datetime import datetime
from typing import Callable, Iterable, List

from sqlalchemy.orm import Session

from billing_reconciler.domain.models import CollectionReport, DocumentClass, Report, SyncOutcome
from billing_reconciler.infrastructure.database.repositories import InvoiceRepository
from billing_reconciler.utils.date_utils import utc_now

_TITLES = {
    DocumentClass.REGULAR: "Regular invoices",
    DocumentClass.CLEARANCE: "Clearance invoices",
}


class ReconciliationReporter:
    """Read-only aggregation; run after the synchronizer so the stored numbers are current"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    def build_report(self, document_classes: Iterable[DocumentClass] = tuple(DocumentClass)) -> Report:
        collections = {}
        for document_class in document_classes:
            repository = InvoiceRepository(self.db, document_class)
            collections[document_class] = CollectionReport(
                document_class=document_class,
                invoice_count=repository.count(),
                statuses=repository.status_summaries(),
                installment_invoices=repository.installment_invoices(),
            )
        return Report(generated_at=self.clock(), collections=collections)


def format_sync_outcome(outcome: SyncOutcome) -> List[str]:
    lines = [
        f"{_TITLES[outcome.document_class]}: {outcome.updated_count} updated, "
        f"{outcome.unchanged_count} unchanged, {outcome.error_count} errors"
        + (" (dry run)" if outcome.dry_run else "")
        + (" (cancelled)" if outcome.cancelled else "")
    ]
    for change in outcome.changes:
        lines.append(
            f"  {change.invoice_number}: paid {change.old_amount_paid} -> {change.new_amount_paid}, "
            f"remaining {change.old_remaining_amount} -> {change.new_remaining_amount}, "
            f"status {change.old_payment_status} -> {change.new_payment_status}"
        )
    for error in outcome.errors:
        lines.append(f"  ! {error.reference}: {error.error}")
    return lines


def format_report(report: Report) -> str:
    """Human-readable summary for the console"""
    lines = [f"Payment report generated at {report.generated_at.isoformat(timespec='seconds')}"]

    for document_class, collection in report.collections.items():
        lines.append("")
        lines.append(f"{_TITLES[document_class]} ({collection.invoice_count})")
        for summary in collection.statuses:
            lines.append(
                f"  {summary.status:<12} {summary.count:>5}  total {summary.total}  "
                f"paid {summary.amount_paid}  remaining {summary.remaining_amount}"
            )

        if collection.installment_invoices:
            lines.append("  Installment invoices:")
            for invoice in collection.installment_invoices:
                next_date = (
                    invoice.next_installment_date.date().isoformat() if invoice.next_installment_date else "not set"
                )
                lines.append(
                    f"    {invoice.invoice_number}: {invoice.installments_paid}/{invoice.installment_count} "
                    f"of {invoice.installment_amount}, next {next_date}"
                )

    return "\n".join(lines)
