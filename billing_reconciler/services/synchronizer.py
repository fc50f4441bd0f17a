"""Invoice synchronizer - recomputes derived payment fields and corrects drift in the store"""

import logging
import threading
import time
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from sqlalchemy.orm import Session

from billing_reconciler.config import settings
from billing_reconciler.domain.exceptions import DomainException
from billing_reconciler.domain.models import (
    DerivedState,
    DocumentClass,
    InvoiceChange,
    InvoiceRecord,
    RecordError,
    SyncOutcome,
)
from billing_reconciler.domain.payment_status import compute
from billing_reconciler.infrastructure.database.repositories import InvoiceRepository
from billing_reconciler.infrastructure.observability.logging import log_invoice_change, log_sync_outcome
from billing_reconciler.infrastructure.observability.metrics import record_sync_outcome
from billing_reconciler.utils.date_utils import as_naive_utc, utc_now
from billing_reconciler.utils.money import to_money


def document_classes_for(selector: str) -> List[DocumentClass]:
    """Resolve a "regular" / "clearance" / "all" selector"""
    if selector == "all":
        return list(DocumentClass)
    return [DocumentClass(selector)]


def _same_instant(a: Optional[datetime], b: Optional[datetime]) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return as_naive_utc(a) == as_naive_utc(b)


def needs_update(record: InvoiceRecord, state: DerivedState) -> bool:
    """True when any of the five derived fields differs from the stored value"""
    return (
        to_money(record.amount_paid) != to_money(state.amount_paid)
        or to_money(record.remaining_amount) != to_money(state.remaining_amount)
        or record.payment_status != state.payment_status.value
        or record.installments_paid != state.installments_paid
        or not _same_instant(record.next_installment_date, state.next_installment_date)
    )


class InvoiceSynchronizer:
    """
    Batch driver reconciling every invoice of a document class.

    Invoices are processed one after another. A failure on one invoice is
    recorded and the loop moves on; only a failed bulk read aborts the run.
    Runs are idempotent: a second run with no new payments writes nothing.
    """

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utc_now,
        error_sample_limit: Optional[int] = None,
        change_sample_limit: Optional[int] = None,
    ):
        self.db = db
        self.clock = clock
        self.error_sample_limit = settings.error_sample_limit if error_sample_limit is None else error_sample_limit
        self.change_sample_limit = settings.change_sample_limit if change_sample_limit is None else change_sample_limit

    def sync_collection(
        self,
        document_class: DocumentClass,
        dry_run: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> SyncOutcome:
        """
        Reconcile one document class.

        Flow per invoice:
        1. Compute derived state from total and payments
        2. Compare with stored amount paid, remaining, status, installments, next date
        3. Persist when anything differs; paid date is set once, on first full payment
        4. Record updated / unchanged / error and continue

        Args:
            document_class: Regular or clearance invoices
            dry_run: Count drift without writing
            cancel_event: Checked between invoices; when set the run stops cleanly

        Raises:
            PersistenceError: The bulk read failed
        """
        start_time = time.time()
        now = self.clock()
        repository = InvoiceRepository(self.db, document_class)
        outcome = SyncOutcome(document_class=document_class, dry_run=dry_run)

        invoices = repository.list_with_payments()
        logging.info(
            "Sync started",
            extra={"step": "sync_start", "document_class": document_class.value, "invoice_count": len(invoices)},
        )

        for record in invoices:
            if cancel_event is not None and cancel_event.is_set():
                outcome.cancelled = True
                logging.warning(
                    "Sync cancelled",
                    extra={"document_class": document_class.value, "processed_count": outcome.processed_count},
                )
                break

            try:
                self._sync_invoice(repository, record, now, outcome)
            except DomainException as e:
                logging.error(
                    f"Invoice reconciliation failed: {e}",
                    extra={"document_class": document_class.value, "invoice_number": record.invoice_number},
                )
                self._record_error(outcome, record, e)
            except Exception as e:
                self.db.rollback()
                logging.exception(
                    f"Unexpected error reconciling invoice: {e}",
                    extra={"document_class": document_class.value, "invoice_number": record.invoice_number},
                )
                self._record_error(outcome, record, e)

        outcome.duration_seconds = time.time() - start_time
        record_sync_outcome(outcome)
        log_sync_outcome(outcome)
        return outcome

    def sync_all(
        self,
        document_classes: Iterable[DocumentClass] = tuple(DocumentClass),
        dry_run: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[SyncOutcome]:
        """Reconcile several document classes in order"""
        outcomes = []
        for document_class in document_classes:
            outcomes.append(self.sync_collection(document_class, dry_run=dry_run, cancel_event=cancel_event))
            if cancel_event is not None and cancel_event.is_set():
                break
        return outcomes

    def _sync_invoice(
        self,
        repository: InvoiceRepository,
        record: InvoiceRecord,
        now: datetime,
        outcome: SyncOutcome,
    ) -> None:
        state = compute(record, record.payments, now=now)

        if not needs_update(record, state):
            outcome.unchanged_count += 1
            return

        change = InvoiceChange(
            invoice_number=record.invoice_number,
            old_amount_paid=to_money(record.amount_paid),
            new_amount_paid=to_money(state.amount_paid),
            old_remaining_amount=to_money(record.remaining_amount),
            new_remaining_amount=to_money(state.remaining_amount),
            old_payment_status=record.payment_status,
            new_payment_status=state.payment_status.value,
        )

        if not outcome.dry_run:
            # Paid date records the first full payment and is never cleared
            paid_date = now if state.is_fully_paid and record.paid_date is None else None
            repository.update_derived_fields(record, state, paid_date=paid_date)
            log_invoice_change(outcome.document_class.value, change)

        outcome.updated_count += 1
        if len(outcome.changes) < self.change_sample_limit:
            outcome.changes.append(change)

    def _record_error(self, outcome: SyncOutcome, record: InvoiceRecord, error: Exception) -> None:
        outcome.error_count += 1
        if len(outcome.errors) < self.error_sample_limit:
            outcome.errors.append(RecordError(reference=record.invoice_number or str(record.id), error=str(error)))
