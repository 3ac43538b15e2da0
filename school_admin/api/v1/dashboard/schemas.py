from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from school_admin.api.v1.attendance.schemas import AttendanceSummary
from school_admin.api.v1.enrollments.schemas import EnrollmentResponse
from school_admin.api.v1.exams.schemas import MarkResponse
from school_admin.api.v1.invoices.schemas import InvoiceResponse, PaymentResponse


class FeeTotals(BaseModel):
    invoiced: Decimal = Decimal("0")
    collected: Decimal = Decimal("0")
    outstanding: Decimal = Decimal("0")
    overdue_invoices: int = 0


class AdminDashboard(BaseModel):
    students: int
    teachers: int
    parents: int
    classes: int
    active_notices: int
    fees: FeeTotals


class ChildSummary(BaseModel):
    student_id: UUID
    full_name: str
    class_id: Optional[UUID] = None


class ParentDashboard(BaseModel):
    children: List[ChildSummary] = Field(default_factory=list)
    open_invoices: List[InvoiceResponse] = Field(default_factory=list)
    outstanding_balance: Decimal = Decimal("0")
    recent_payments: List[PaymentResponse] = Field(default_factory=list)


class StudentDashboard(BaseModel):
    student_id: UUID
    full_name: str
    enrollments: List[EnrollmentResponse] = Field(default_factory=list)
    recent_marks: List[MarkResponse] = Field(default_factory=list)
    attendance: AttendanceSummary
