"""Unit tests for installment plan generation"""

import pytest
from datetime import datetime
from decimal import Decimal
from billing_reconciler.domain.exceptions import InvalidInputError
from billing_reconciler.domain.installments import generate_installment_plan, remaining_installments
from billing_reconciler.domain.models import InvoiceRecord, Payment


def test_generate_installment_plan_equal_split():
    """Test plan with evenly divisible amount"""
    installments = generate_installment_plan(Decimal("1000"), 4, datetime(2025, 1, 10))

    assert len(installments) == 4
    assert all(inst.amount == Decimal("250.00") for inst in installments)
    assert sum(inst.amount for inst in installments) == Decimal("1000")


def test_generate_installment_plan_rounding():
    """Test last installment absorbs remainder"""
    installments = generate_installment_plan(Decimal("1000"), 3, datetime(2025, 1, 10))

    assert [inst.amount for inst in installments] == [Decimal("333.33"), Decimal("333.33"), Decimal("333.34")]
    assert sum(inst.amount for inst in installments) == Decimal("1000")


def test_generate_installment_plan_dates():
    """Test monthly due dates clamped to month end"""
    installments = generate_installment_plan(Decimal("900"), 3, datetime(2025, 1, 31))

    assert [inst.due_date for inst in installments] == [
        datetime(2025, 1, 31),
        datetime(2025, 2, 28),
        datetime(2025, 3, 31),
    ]
    assert [inst.installment_number for inst in installments] == [1, 2, 3]


def test_generate_installment_plan_zero_count():
    """Test plan without installments is rejected"""
    with pytest.raises(InvalidInputError):
        generate_installment_plan(Decimal("1000"), 0)


def test_remaining_installments_marks_progress():
    invoice = InvoiceRecord(
        total=Decimal("1000"),
        due_date=datetime(2025, 6, 30),
        installment_count=4,
        installment_amount=Decimal("250"),
        created_at=datetime(2024, 12, 1),
    )
    payments = [Payment(amount=Decimal("500"), payment_date=datetime(2025, 1, 5))]

    schedule = remaining_installments(invoice, payments, now=datetime(2025, 2, 10))

    assert [inst.is_paid for inst in schedule] == [True, True, False, False]
    # Third installment was due 2025-02-01
    assert [inst.is_overdue for inst in schedule] == [False, False, True, False]


def test_remaining_installments_without_plan():
    invoice = InvoiceRecord(total=Decimal("1000"), due_date=datetime(2025, 6, 30))
    assert remaining_installments(invoice, [], now=datetime(2025, 1, 1)) == []
