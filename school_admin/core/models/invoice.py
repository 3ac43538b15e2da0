"""Invoices, their line items and the payments recorded against them."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from school_admin.core.enums import InvoiceStatus, PaymentStatus
from school_admin.db.session import Base


class Invoice(Base):
    """
    Billing document for a student, owed by a responsible parent.
    total_amount always equals the sum of the items; amount_paid and status are
    maintained by the reconciliation engine only.
    """

    __tablename__ = "invoices"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invoice_number = Column(String(50), nullable=False, unique=True)
    issue_date = Column(Date, nullable=False, default=date.today)
    due_date = Column(Date, nullable=False)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="RESTRICT"), nullable=False)
    parent_id = Column(UUID(as_uuid=True), ForeignKey("parents.id", ondelete="RESTRICT"), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(50), nullable=False, default=InvoiceStatus.OUTSTANDING.value)
    # Administrative override; sticky until explicitly cleared
    is_waived = Column(Boolean, nullable=False, default=False)
    notes = Column(String(500), nullable=True)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
    parent = relationship("Parent")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )
    payments = relationship("Payment", back_populates="invoice", order_by="Payment.payment_date")

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def balance_due(self) -> Decimal:
        return Decimal(self.total_amount or 0) - Decimal(self.amount_paid or 0)


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    fee_type_id = Column(UUID(as_uuid=True), ForeignKey("fee_types.id", ondelete="RESTRICT"), nullable=False)
    description = Column(String(100), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    # Keeps items in entry order
    position = Column(Integer, nullable=False, default=0)

    invoice = relationship("Invoice", back_populates="items")
    fee_type = relationship("FeeType")


class Payment(Base):
    """
    Money received. Linked to an invoice when it pays one; student_id and
    parent_id are copied from the invoice at creation time.
    """

    __tablename__ = "payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="RESTRICT"), nullable=False)
    parent_id = Column(UUID(as_uuid=True), ForeignKey("parents.id", ondelete="RESTRICT"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(Date, nullable=False, default=date.today)
    payment_method = Column(String(50), nullable=True)
    status = Column(String(50), nullable=False, default=PaymentStatus.COMPLETED.value)
    transaction_id = Column(String(255), nullable=True)
    notes = Column(String(500), nullable=True)
    recorded_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    invoice = relationship("Invoice", back_populates="payments")
    student = relationship("Student")
    parent = relationship("Parent")
