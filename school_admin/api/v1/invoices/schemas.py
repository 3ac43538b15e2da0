from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from school_admin.core.enums import PaymentMethod, PaymentStatus


# --- Items ---
class InvoiceItemCreate(BaseModel):
    fee_type_id: UUID
    description: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class InvoiceItemUpdate(BaseModel):
    fee_type_id: Optional[UUID] = None
    description: Optional[str] = Field(None, min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)


class InvoiceItemUpsert(InvoiceItemCreate):
    """Item in a full invoice update: with id it edits that item, without id it is added."""

    id: Optional[UUID] = None


class InvoiceItemResponse(BaseModel):
    id: UUID
    fee_type_id: UUID
    description: str
    amount: Decimal
    position: int

    class Config:
        from_attributes = True


# --- Invoices ---
class InvoiceCreate(BaseModel):
    student_id: UUID
    parent_id: UUID
    invoice_number: Optional[str] = Field(None, max_length=50)
    issue_date: Optional[date] = None
    due_date: date
    notes: Optional[str] = Field(None, max_length=500)
    items: List[InvoiceItemCreate] = Field(..., min_length=1)


class InvoiceUpdate(BaseModel):
    parent_id: Optional[UUID] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=500)
    # Replaces the item list; matched to existing items by id
    items: Optional[List[InvoiceItemUpsert]] = Field(None, min_length=1)


class InvoiceResponse(BaseModel):
    id: UUID
    invoice_number: str
    issue_date: date
    due_date: date
    student_id: UUID
    parent_id: UUID
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    status: str
    is_waived: bool
    notes: Optional[str] = None
    items: List[InvoiceItemResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class InvoiceBalance(BaseModel):
    invoice_id: UUID
    invoice_number: str
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    status: str


# --- Payments ---
class PaymentCreate(BaseModel):
    """Admin payment entry."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_date: Optional[date] = None
    status: PaymentStatus = PaymentStatus.COMPLETED
    transaction_id: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=500)


class ParentPaymentCreate(BaseModel):
    """Parent self-service payment. Always recorded as Completed."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    transaction_id: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=500)


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus


class PaymentResponse(BaseModel):
    id: UUID
    invoice_id: Optional[UUID] = None
    student_id: UUID
    parent_id: UUID
    amount: Decimal
    payment_date: date
    payment_method: Optional[str] = None
    status: str
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    recorded_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceDetailResponse(InvoiceResponse):
    payments: List[PaymentResponse] = Field(default_factory=list)
