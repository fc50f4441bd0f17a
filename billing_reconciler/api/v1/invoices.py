"""Per-invoice views: payment preview and installment schedule"""

import uuid
from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from billing_reconciler.api.dependencies import get_clock
from billing_reconciler.api.v1.schemas import (
    DerivedStateSchema,
    InstallmentSchema,
    InstallmentScheduleResponse,
    PaymentPreviewRequest,
    PaymentPreviewResponse,
    PaymentValidationSchema,
)
from billing_reconciler.domain.exceptions import InvalidInputError, PersistenceError, RecordNotFoundError
from billing_reconciler.domain.installments import remaining_installments
from billing_reconciler.domain.models import DocumentClass, InvoiceRecord
from billing_reconciler.domain.payment_status import compute, preview_payment, validate_payment_amount
from billing_reconciler.infrastructure.database.repositories import InvoiceRepository
from billing_reconciler.infrastructure.database.session import get_db

router = APIRouter()


def _load_invoice(db: Session, document_class: DocumentClass, invoice_id: str) -> InvoiceRecord:
    try:
        invoice_uuid = uuid.UUID(invoice_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid invoice ID format")

    try:
        return InvoiceRepository(db, document_class).get_with_payments(invoice_uuid)
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail="Invoice not found")
    except PersistenceError:
        raise HTTPException(status_code=503, detail="Record store unavailable")


@router.post("/invoices/{document_class}/{invoice_id}/payment-preview", response_model=PaymentPreviewResponse)
def payment_preview(
    document_class: DocumentClass,
    invoice_id: str,
    request_body: PaymentPreviewRequest,
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """
    Validate a payment amount and show the state the invoice would reach.

    Nothing is persisted; the preview is only computed for valid amounts.
    """
    invoice = _load_invoice(db, document_class, invoice_id)

    now = clock()
    try:
        current = compute(invoice, now=now)
        validation = validate_payment_amount(request_body.amount, invoice, now=now)
        preview = preview_payment(invoice, None, request_body.amount, now=now) if validation.is_valid else None
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return PaymentPreviewResponse(
        invoice_number=invoice.invoice_number,
        current=DerivedStateSchema.model_validate(current),
        validation=PaymentValidationSchema.model_validate(validation),
        preview=DerivedStateSchema.model_validate(preview) if preview else None,
    )


@router.get("/invoices/{document_class}/{invoice_id}/installments", response_model=InstallmentScheduleResponse)
def get_installments(
    document_class: DocumentClass,
    invoice_id: str,
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """
    Installment schedule starting at the invoice's creation date.

    Installments are marked paid in order as payments cover them; unpaid
    installments past their due date are marked overdue. An invoice without
    a plan returns an empty schedule.
    """
    invoice = _load_invoice(db, document_class, invoice_id)

    try:
        schedule = remaining_installments(invoice, now=clock())
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return InstallmentScheduleResponse(
        invoice_number=invoice.invoice_number,
        installment_count=invoice.installment_count,
        installments_paid=sum(1 for installment in schedule if installment.is_paid),
        installments=[InstallmentSchema.model_validate(installment) for installment in schedule],
    )
