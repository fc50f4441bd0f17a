"""Installment plan generation for invoices paid in monthly installments"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from billing_reconciler.domain.exceptions import InvalidInputError
from billing_reconciler.domain.models import Installment, InvoiceRecord, Payment
from billing_reconciler.domain.payment_status import compute
from billing_reconciler.utils.date_utils import add_months, as_naive_utc, utc_now
from billing_reconciler.utils.money import CENT, to_decimal


def installment_amount_for(total, installment_count: int) -> Decimal:
    """Per-installment amount rounded to cents"""
    if installment_count <= 0:
        raise InvalidInputError("Installment count must be greater than zero")
    return (to_decimal(total) / installment_count).quantize(CENT, rounding=ROUND_HALF_UP)


def generate_installment_plan(
    total,
    installment_count: int,
    first_due_date: Optional[datetime] = None,
) -> List[Installment]:
    """
    Generate a monthly installment schedule.

    Requirements:
    - Equal installments rounded to cents
    - One calendar month apart (end-of-month dates are clamped)
    - Last installment absorbs the rounding remainder so the plan sums to total

    Args:
        total: Amount to split into installments
        installment_count: Number of payments
        first_due_date: First due date (default: now)

    Example:
        1000.00 / 3 -> [333.33, 333.33, 333.34]
    """
    amount = installment_amount_for(total, installment_count)
    total = to_decimal(total)

    if first_due_date is None:
        first_due_date = utc_now()
    first_due_date = as_naive_utc(first_due_date)

    installments = []
    for i in range(installment_count):
        is_last = i == installment_count - 1
        installments.append(
            Installment(
                installment_number=i + 1,
                due_date=add_months(first_due_date, i),
                amount=total - amount * (installment_count - 1) if is_last else amount,
            )
        )

    return installments


def remaining_installments(
    invoice: InvoiceRecord,
    payments: Optional[List[Payment]] = None,
    first_due_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> List[Installment]:
    """Schedule of an invoice's plan marked with paid/overdue progress"""
    if not invoice.has_installment_plan:
        return []

    if now is None:
        now = utc_now()
    now = as_naive_utc(now)

    state = compute(invoice, payments, now=now)
    schedule = generate_installment_plan(
        invoice.total,
        invoice.installment_count,
        first_due_date or invoice.created_at or now,
    )

    for index, installment in enumerate(schedule):
        installment.is_paid = index < state.installments_paid
        installment.is_overdue = not installment.is_paid and now > installment.due_date

    return schedule
