"""SQLAlchemy ORM models for invoices, clearance invoices, payments and trips"""

import uuid
from sqlalchemy import Column, Numeric, DateTime, Integer, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class InvoiceColumnsMixin:
    """Columns shared by regular and customs-clearance invoices"""

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invoice_number = Column(Text, nullable=False, unique=True, index=True)
    total = Column(Numeric(12, 2), nullable=False)
    due_date = Column(DateTime, nullable=False)
    payment_status = Column(Text, nullable=False, default="PENDING")
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    remaining_amount = Column(Numeric(12, 2), nullable=False, default=0)
    installment_count = Column(Integer, nullable=True)
    installment_amount = Column(Numeric(12, 2), nullable=True)
    installments_paid = Column(Integer, nullable=False, default=0)
    next_installment_date = Column(DateTime, nullable=True)
    paid_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class PaymentColumnsMixin:
    """Columns shared by payments of both invoice collections"""

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class Invoice(InvoiceColumnsMixin, Base):
    """Trip invoice"""

    __tablename__ = "invoice"

    payments = relationship("Payment", back_populates="invoice", cascade="all, delete-orphan")


class Payment(PaymentColumnsMixin, Base):
    """Payment recorded against a trip invoice"""

    __tablename__ = "payment"

    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoice.id", ondelete="CASCADE"), nullable=False, index=True)

    invoice = relationship("Invoice", back_populates="payments")


class ClearanceInvoice(InvoiceColumnsMixin, Base):
    """Customs-clearance invoice"""

    __tablename__ = "clearance_invoice"

    payments = relationship("ClearancePayment", back_populates="invoice", cascade="all, delete-orphan")


class ClearancePayment(PaymentColumnsMixin, Base):
    """Payment recorded against a customs-clearance invoice"""

    __tablename__ = "clearance_payment"

    invoice_id = Column(
        UUID(as_uuid=True), ForeignKey("clearance_invoice.id", ondelete="CASCADE"), nullable=False, index=True
    )

    invoice = relationship("ClearanceInvoice", back_populates="payments")


class Trip(Base):
    """Trip document; only its number and creation time matter here"""

    __tablename__ = "trip"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    trip_number = Column(Text, nullable=False, unique=True, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
