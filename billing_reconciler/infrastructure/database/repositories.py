"""Data access layer for invoices, payments and document identifiers"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from billing_reconciler.domain.exceptions import PersistenceError, RecordNotFoundError
from billing_reconciler.domain.models import (
    DerivedState,
    DocumentClass,
    DocumentKind,
    InstallmentInvoiceSummary,
    InvoiceRecord,
    LegacyRecord,
    Payment,
    PaymentStatus,
    StatusSummary,
)
from billing_reconciler.infrastructure.database import models
from billing_reconciler.utils.money import to_money

_INVOICE_MODELS: Dict[DocumentClass, Tuple[type, type]] = {
    DocumentClass.REGULAR: (models.Invoice, models.Payment),
    DocumentClass.CLEARANCE: (models.ClearanceInvoice, models.ClearancePayment),
}


def _to_record(row) -> InvoiceRecord:
    return InvoiceRecord(
        id=row.id,
        invoice_number=row.invoice_number,
        total=row.total,
        due_date=row.due_date,
        payment_status=row.payment_status,
        amount_paid=row.amount_paid,
        remaining_amount=row.remaining_amount,
        installment_count=row.installment_count,
        installment_amount=row.installment_amount,
        installments_paid=row.installments_paid,
        next_installment_date=row.next_installment_date,
        paid_date=row.paid_date,
        created_at=row.created_at,
        payments=[Payment(amount=p.amount, payment_date=p.payment_date) for p in row.payments],
    )


class InvoiceRepository:
    """Repository for one invoice collection (regular or clearance)"""

    def __init__(self, db: Session, document_class: DocumentClass):
        self.db = db
        self.document_class = document_class
        self.model, self.payment_model = _INVOICE_MODELS[document_class]

    def list_with_payments(self) -> List[InvoiceRecord]:
        """Bulk read of every invoice with its payments eagerly loaded"""
        try:
            rows = (
                self.db.query(self.model)
                .options(selectinload(self.model.payments))
                .order_by(self.model.created_at, self.model.invoice_number)
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to load {self.document_class.value} invoices: {e}") from e
        return [_to_record(row) for row in rows]

    def get_with_payments(self, invoice_id: uuid.UUID) -> InvoiceRecord:
        """Fetch one invoice with payments"""
        try:
            row = (
                self.db.query(self.model)
                .options(selectinload(self.model.payments))
                .filter(self.model.id == invoice_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to load invoice {invoice_id}: {e}") from e

        if row is None:
            raise RecordNotFoundError(f"{self.document_class.value} invoice {invoice_id} not found")
        return _to_record(row)

    def update_derived_fields(
        self,
        record: InvoiceRecord,
        state: DerivedState,
        paid_date: Optional[datetime] = None,
    ) -> None:
        """
        Persist derived fields of a single invoice and commit.

        The write only applies while the invoice still has the number of
        payments it had when read, so a payment appended in between is never
        overwritten by stale totals.

        Raises:
            PersistenceError: Store failure or concurrent payment
        """
        payment_count = (
            select(func.count(self.payment_model.id))
            .where(self.payment_model.invoice_id == record.id)
            .scalar_subquery()
        )
        values = {
            "amount_paid": to_money(state.amount_paid),
            "remaining_amount": to_money(state.remaining_amount),
            "payment_status": state.payment_status.value,
            "installments_paid": state.installments_paid,
            "next_installment_date": state.next_installment_date,
        }
        if paid_date is not None:
            values["paid_date"] = paid_date

        stmt = (
            update(self.model)
            .where(self.model.id == record.id, payment_count == len(record.payments))
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        try:
            result = self.db.execute(stmt)
            if result.rowcount == 0:
                self.db.rollback()
                raise PersistenceError(
                    f"Invoice {record.invoice_number} changed since it was read; left for the next run"
                )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to update invoice {record.invoice_number}: {e}") from e

    def count(self) -> int:
        try:
            return self.db.query(func.count(self.model.id)).scalar() or 0
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to count {self.document_class.value} invoices: {e}") from e

    def status_summaries(self) -> List[StatusSummary]:
        """Counts and monetary sums grouped by payment status"""
        try:
            rows = (
                self.db.query(
                    self.model.payment_status,
                    func.count(self.model.id),
                    func.sum(self.model.total),
                    func.sum(self.model.amount_paid),
                    func.sum(self.model.remaining_amount),
                )
                .group_by(self.model.payment_status)
                .order_by(self.model.payment_status)
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to summarise {self.document_class.value} invoices: {e}") from e
        return [
            StatusSummary(
                status=status,
                count=count,
                total=to_money(total),
                amount_paid=to_money(amount_paid),
                remaining_amount=to_money(remaining_amount),
            )
            for status, count, total, amount_paid, remaining_amount in rows
        ]

    def installment_invoices(self) -> List[InstallmentInvoiceSummary]:
        """Invoices currently paid under an installment plan"""
        try:
            rows = (
                self.db.query(self.model)
                .filter(self.model.payment_status == PaymentStatus.INSTALLMENT.value)
                .order_by(self.model.next_installment_date, self.model.invoice_number)
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to load {self.document_class.value} installment invoices: {e}") from e
        return [
            InstallmentInvoiceSummary(
                invoice_number=row.invoice_number,
                installment_count=row.installment_count,
                installments_paid=row.installments_paid,
                installment_amount=row.installment_amount,
                next_installment_date=row.next_installment_date,
            )
            for row in rows
        ]


_IDENTIFIER_COLUMNS = {
    DocumentKind.REGULAR: (models.Invoice, "invoice_number"),
    DocumentKind.CLEARANCE: (models.ClearanceInvoice, "invoice_number"),
    DocumentKind.TRIP: (models.Trip, "trip_number"),
}


class IdentifierRepository:
    """Repository for the human-readable identifiers of one document kind"""

    def __init__(self, db: Session, kind: DocumentKind):
        self.db = db
        self.kind = kind
        self.model, column_name = _IDENTIFIER_COLUMNS[kind]
        self.column = getattr(self.model, column_name)

    def exists(self, identifier: str) -> bool:
        try:
            return self.db.query(self.model.id).filter(self.column == identifier).first() is not None
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to look up identifier {identifier}: {e}") from e

    def count_with_prefix(self, prefix: str) -> int:
        try:
            return self.db.query(func.count(self.model.id)).filter(self.column.startswith(prefix)).scalar() or 0
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to count identifiers starting with {prefix}: {e}") from e

    def list_legacy(self, prefixes: List[str], newest_first: bool = False, limit: Optional[int] = None) -> List[LegacyRecord]:
        """Records whose identifier starts with any legacy prefix, ordered by creation date"""
        order = self.model.created_at.desc() if newest_first else self.model.created_at.asc()
        query = (
            self.db.query(self.model.id, self.column, self.model.created_at)
            .filter(or_(*[self.column.startswith(prefix) for prefix in prefixes]))
            .order_by(order, self.model.id)
        )
        if limit is not None:
            query = query.limit(limit)

        try:
            rows = query.all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to load legacy {self.kind.value} identifiers: {e}") from e
        return [LegacyRecord(id=row[0], identifier=row[1], created_at=row[2]) for row in rows]

    def rename(self, record_id: uuid.UUID, new_identifier: str) -> None:
        """Assign a new identifier to one record and commit"""
        stmt = (
            update(self.model)
            .where(self.model.id == record_id)
            .values({self.column.key: new_identifier})
            .execution_options(synchronize_session=False)
        )
        try:
            self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to assign identifier {new_identifier}: {e}") from e
