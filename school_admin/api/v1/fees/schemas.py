from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


# --- Fee types ---
class FeeTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_recurring: bool = False


class FeeTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_recurring: Optional[bool] = None


class FeeTypeResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    is_recurring: bool
    created_at: datetime

    class Config:
        from_attributes = True


# --- Class fees ---
class ClassFeeCreate(BaseModel):
    class_id: UUID
    fee_type_id: UUID
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    effective_date: Optional[date] = None


class ClassFeeUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    effective_date: Optional[date] = None


class ClassFeeResponse(BaseModel):
    id: UUID
    class_id: UUID
    fee_type_id: UUID
    amount: Decimal
    effective_date: date
    created_at: datetime

    class Config:
        from_attributes = True


# --- Student fees ---
class StudentFeeCreate(BaseModel):
    student_id: UUID
    fee_type_id: UUID
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    due_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=500)


class StudentFeeUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    due_date: Optional[date] = None
    status: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=500)


class StudentFeeResponse(BaseModel):
    id: UUID
    student_id: UUID
    fee_type_id: UUID
    amount: Decimal
    due_date: Optional[date] = None
    status: str
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SuggestedInvoiceItem(BaseModel):
    """Pre-filled invoice line built from the fee setup."""

    fee_type_id: UUID
    description: str
    amount: Decimal
    source: str  # "class" or "student"
