"""Payment status calculator - derives the financial state of an invoice from its payments"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from billing_reconciler.config import settings
from billing_reconciler.domain.exceptions import InvalidInputError
from billing_reconciler.domain.models import (
    DerivedState,
    InvoiceRecord,
    Payment,
    PaymentStatus,
    PaymentValidation,
)
from billing_reconciler.utils.date_utils import add_months, as_naive_utc, utc_now
from billing_reconciler.utils.money import to_decimal

ZERO = Decimal("0")

# Statuses kept as-is while nothing has been paid
_PRESERVED_UNPAID_STATUSES = {PaymentStatus.SENT.value, PaymentStatus.CANCELLED.value}


def _check_inputs(invoice: InvoiceRecord, payments: List[Payment], pending: Decimal) -> None:
    if invoice.total is None or to_decimal(invoice.total) < 0:
        raise InvalidInputError(f"Invoice total must be non-negative, got {invoice.total}")
    for payment in payments:
        if payment.amount is None or to_decimal(payment.amount) < 0:
            raise InvalidInputError(f"Payment amount must be non-negative, got {payment.amount}")
    if pending < 0:
        raise InvalidInputError(f"Pending payment amount must be non-negative, got {pending}")


def compute(
    invoice: InvoiceRecord,
    payments: Optional[List[Payment]] = None,
    pending_payment_amount=0,
    now: Optional[datetime] = None,
) -> DerivedState:
    """
    Derive amount paid, remaining balance, status and installment progress.

    Rules (first matching branch wins, overdue overlay applied last):
    - Fully paid: remaining is zero or paid >= total -> PAID, installment
      plan forced to completion
    - Partially paid with an installment plan -> INSTALLMENT, next due date is
      the latest payment date (or now) plus one calendar month
    - Partially paid without a plan -> PARTIAL
    - Nothing paid -> keep SENT/CANCELLED, otherwise PENDING
    - Past due with a balance -> OVERDUE unless PAID or CANCELLED

    Remainders smaller than the epsilon (0.01) are treated as exactly zero,
    and such an invoice also counts as fully paid.

    Args:
        invoice: Invoice with total, due date, plan and current status
        payments: Recorded payments (defaults to invoice.payments)
        pending_payment_amount: Amount of a payment not yet persisted
        now: Reference time (read once from the clock when omitted)

    Raises:
        InvalidInputError: Negative total, payment amount or pending amount
    """
    if payments is None:
        payments = invoice.payments
    if now is None:
        now = utc_now()
    now = as_naive_utc(now)
    pending = to_decimal(pending_payment_amount or 0)

    _check_inputs(invoice, payments, pending)

    total = to_decimal(invoice.total)
    amount_paid = sum((to_decimal(p.amount) for p in payments), ZERO) + pending

    raw_remaining = total - amount_paid
    if abs(raw_remaining) < settings.amount_epsilon:
        remaining_amount = ZERO
    else:
        remaining_amount = max(ZERO, raw_remaining)

    is_overdue = now > as_naive_utc(invoice.due_date) and remaining_amount > 0

    installments_paid = 0
    next_installment_date = None

    if remaining_amount == 0 or amount_paid >= total:
        status = PaymentStatus.PAID
        installments_paid = invoice.installment_count or 0
    elif amount_paid > 0:
        if invoice.has_installment_plan:
            status = PaymentStatus.INSTALLMENT
            installment_amount = to_decimal(invoice.installment_amount)
            installments_paid = min(invoice.installment_count, int(amount_paid // installment_amount))

            if installments_paid < invoice.installment_count and remaining_amount > 0:
                if payments:
                    last_payment_date = max(as_naive_utc(p.payment_date) for p in payments)
                else:
                    last_payment_date = now
                next_installment_date = add_months(last_payment_date, 1)
        else:
            status = PaymentStatus.PARTIAL
    elif invoice.payment_status in _PRESERVED_UNPAID_STATUSES:
        status = PaymentStatus(invoice.payment_status)
    else:
        status = PaymentStatus.PENDING

    if is_overdue and status not in (PaymentStatus.PAID, PaymentStatus.CANCELLED):
        status = PaymentStatus.OVERDUE

    return DerivedState(
        amount_paid=amount_paid,
        remaining_amount=remaining_amount,
        payment_status=status,
        installments_paid=installments_paid,
        next_installment_date=next_installment_date,
        is_fully_paid=amount_paid >= total or remaining_amount == 0,
        is_overdue=is_overdue,
    )


def preview_payment(
    invoice: InvoiceRecord,
    payments: Optional[List[Payment]],
    amount,
    now: Optional[datetime] = None,
) -> DerivedState:
    """State the invoice would reach once a payment of `amount` is recorded"""
    return compute(invoice, payments, pending_payment_amount=amount, now=now)


def validate_payment_amount(
    amount,
    invoice: InvoiceRecord,
    payments: Optional[List[Payment]] = None,
    now: Optional[datetime] = None,
) -> PaymentValidation:
    """
    Check a proposed payment against the current balance.

    Rejects non-positive amounts and amounts above the remaining balance.
    Warns when an installment invoice receives something other than the
    installment amount or the full remaining balance.
    """
    amount = to_decimal(amount)
    if amount is None or amount <= 0:
        return PaymentValidation(is_valid=False, error="Payment amount must be greater than zero")

    current = compute(invoice, payments, now=now)

    if amount > current.remaining_amount:
        return PaymentValidation(
            is_valid=False,
            error=f"Payment amount ({amount}) exceeds the remaining amount ({current.remaining_amount})",
        )

    warnings = []
    if invoice.installment_amount and current.payment_status == PaymentStatus.INSTALLMENT:
        installment_amount = to_decimal(invoice.installment_amount)
        if amount != installment_amount and amount != current.remaining_amount:
            warnings.append(f"The configured installment amount is {installment_amount}")

    return PaymentValidation(is_valid=True, warnings=warnings)
