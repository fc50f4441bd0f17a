"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    PARTIAL = "PARTIAL"
    INSTALLMENT = "INSTALLMENT"
    OVERDUE = "OVERDUE"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class DocumentClass(str, Enum):
    """Invoice collections reconciled with identical logic"""

    REGULAR = "regular"
    CLEARANCE = "clearance"


class DocumentKind(str, Enum):
    """Document families that receive sequential identifiers"""

    REGULAR = "regular"
    CLEARANCE = "clearance"
    TRIP = "trip"


@dataclass
class Payment:
    """Money received against an invoice"""

    amount: Decimal
    payment_date: datetime


@dataclass
class InvoiceRecord:
    """Invoice as read from the store, with its payment history"""

    total: Decimal
    due_date: datetime
    id: Optional[uuid.UUID] = None
    invoice_number: str = ""
    payment_status: str = PaymentStatus.PENDING.value
    amount_paid: Decimal = Decimal("0")
    remaining_amount: Decimal = Decimal("0")
    installment_count: Optional[int] = None
    installment_amount: Optional[Decimal] = None
    installments_paid: int = 0
    next_installment_date: Optional[datetime] = None
    paid_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    payments: List[Payment] = field(default_factory=list)

    @property
    def has_installment_plan(self) -> bool:
        return (
            self.installment_count is not None
            and self.installment_amount is not None
            and self.installment_count > 0
            and self.installment_amount > 0
        )


@dataclass
class DerivedState:
    """Authoritative financial state computed from total and payments"""

    amount_paid: Decimal
    remaining_amount: Decimal
    payment_status: PaymentStatus
    installments_paid: int
    next_installment_date: Optional[datetime]
    is_fully_paid: bool
    is_overdue: bool


@dataclass
class PaymentValidation:
    """Result of checking a proposed payment amount"""

    is_valid: bool
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class Installment:
    """Single payment in a monthly installment schedule"""

    installment_number: int
    due_date: datetime
    amount: Decimal
    is_paid: bool = False
    is_overdue: bool = False


@dataclass
class InvoiceChange:
    """Before/after summary of one corrected invoice"""

    invoice_number: str
    old_amount_paid: Decimal
    new_amount_paid: Decimal
    old_remaining_amount: Decimal
    new_remaining_amount: Decimal
    old_payment_status: str
    new_payment_status: str


@dataclass
class RecordError:
    """Failure captured for a single record during a batch run"""

    reference: str
    error: str


@dataclass
class SyncOutcome:
    """Result of reconciling one document class"""

    document_class: DocumentClass
    updated_count: int = 0
    unchanged_count: int = 0
    error_count: int = 0
    changes: List[InvoiceChange] = field(default_factory=list)
    errors: List[RecordError] = field(default_factory=list)
    cancelled: bool = False
    dry_run: bool = False
    duration_seconds: float = 0.0

    @property
    def processed_count(self) -> int:
        return self.updated_count + self.unchanged_count + self.error_count


@dataclass
class StatusSummary:
    """Count and monetary sums for one payment status"""

    status: str
    count: int
    total: Decimal
    amount_paid: Decimal
    remaining_amount: Decimal


@dataclass
class InstallmentInvoiceSummary:
    invoice_number: str
    installment_count: Optional[int]
    installments_paid: int
    installment_amount: Optional[Decimal]
    next_installment_date: Optional[datetime]


@dataclass
class CollectionReport:
    """Financial summary of one document class"""

    document_class: DocumentClass
    invoice_count: int
    statuses: List[StatusSummary]
    installment_invoices: List[InstallmentInvoiceSummary]


@dataclass
class Report:
    generated_at: datetime
    collections: Dict[DocumentClass, CollectionReport]


@dataclass
class ParsedIdentifier:
    kind: DocumentKind
    date_key: str
    sequence: int


@dataclass
class LegacyRecord:
    """Record still carrying a legacy-format identifier"""

    id: uuid.UUID
    identifier: str
    created_at: datetime


@dataclass
class MigrationDetail:
    old_identifier: str
    new_identifier: Optional[str]
    status: str  # "success" | "conflict" | "error"
    error: Optional[str] = None


@dataclass
class MigrationOutcome:
    kind: DocumentKind
    success_count: int = 0
    conflict_count: int = 0
    error_count: int = 0
    details: List[MigrationDetail] = field(default_factory=list)
    failures: List[MigrationDetail] = field(default_factory=list)  # conflicts and errors only


@dataclass
class MigrationStatus:
    kind: DocumentKind
    legacy_count: int
    new_format_count: int
    samples: List[LegacyRecord]

    @property
    def needs_migration(self) -> bool:
        return self.legacy_count > 0
