"""Pydantic schemas for API request/response validation"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from billing_reconciler.domain.models import DocumentClass, DocumentKind, PaymentStatus, Report


class AttributesModel(BaseModel):
    """Base for responses built from domain dataclasses"""

    model_config = ConfigDict(from_attributes=True)


class InvoiceChangeSchema(AttributesModel):
    invoice_number: str
    old_amount_paid: Decimal
    new_amount_paid: Decimal
    old_remaining_amount: Decimal
    new_remaining_amount: Decimal
    old_payment_status: str
    new_payment_status: str


class RecordErrorSchema(AttributesModel):
    reference: str
    error: str


class SyncOutcomeSchema(AttributesModel):
    """Result of reconciling one document class"""

    document_class: DocumentClass
    updated_count: int
    unchanged_count: int
    error_count: int
    cancelled: bool
    dry_run: bool
    changes: List[InvoiceChangeSchema]
    errors: List[RecordErrorSchema]


class StatusSummarySchema(AttributesModel):
    status: str
    count: int
    total: Decimal
    amount_paid: Decimal
    remaining_amount: Decimal


class InstallmentInvoiceSchema(AttributesModel):
    invoice_number: str
    installment_count: Optional[int] = None
    installments_paid: int
    installment_amount: Optional[Decimal] = None
    next_installment_date: Optional[datetime] = None


class CollectionReportSchema(AttributesModel):
    document_class: DocumentClass
    invoice_count: int
    statuses: List[StatusSummarySchema]
    installment_invoices: List[InstallmentInvoiceSchema]


class ReportResponse(BaseModel):
    """Response for GET /v1/reports/payments"""

    generated_at: datetime
    collections: List[CollectionReportSchema]


class SyncResponse(BaseModel):
    """Response for POST /v1/sync"""

    outcomes: List[SyncOutcomeSchema]
    report: ReportResponse


class SyncStatusResponse(BaseModel):
    """Response for GET /v1/sync/status - drift found by a dry run"""

    needs_sync_count: int
    outcomes: List[SyncOutcomeSchema]
    report: ReportResponse


class PaymentPreviewRequest(BaseModel):
    """Request body for POST /v1/invoices/{document_class}/{invoice_id}/payment-preview"""

    amount: Decimal = Field(..., description="Amount of the payment about to be recorded")


class DerivedStateSchema(AttributesModel):
    amount_paid: Decimal
    remaining_amount: Decimal
    payment_status: PaymentStatus
    installments_paid: int
    next_installment_date: Optional[datetime] = None
    is_fully_paid: bool
    is_overdue: bool


class PaymentValidationSchema(AttributesModel):
    is_valid: bool
    error: Optional[str] = None
    warnings: List[str] = []


class InstallmentSchema(AttributesModel):
    installment_number: int
    due_date: datetime
    amount: Decimal
    is_paid: bool
    is_overdue: bool


class InstallmentScheduleResponse(BaseModel):
    """Response for GET /v1/invoices/{document_class}/{invoice_id}/installments"""

    invoice_number: str
    installment_count: Optional[int] = None
    installments_paid: int
    installments: List[InstallmentSchema]


class PaymentPreviewResponse(BaseModel):
    invoice_number: str
    current: DerivedStateSchema
    validation: PaymentValidationSchema
    preview: Optional[DerivedStateSchema] = None


class LegacyRecordSchema(AttributesModel):
    id: uuid.UUID
    identifier: str
    created_at: datetime


class MigrationStatusSchema(AttributesModel):
    kind: DocumentKind
    legacy_count: int
    new_format_count: int
    needs_migration: bool
    samples: List[LegacyRecordSchema]


class MigrationDetailSchema(AttributesModel):
    old_identifier: str
    new_identifier: Optional[str] = None
    status: str
    error: Optional[str] = None


class MigrationOutcomeSchema(AttributesModel):
    kind: DocumentKind
    success_count: int
    conflict_count: int
    error_count: int
    details: List[MigrationDetailSchema]
    failures: List[MigrationDetailSchema]


def report_response(report: Report) -> ReportResponse:
    return ReportResponse(
        generated_at=report.generated_at,
        collections=[CollectionReportSchema.model_validate(c) for c in report.collections.values()],
    )
