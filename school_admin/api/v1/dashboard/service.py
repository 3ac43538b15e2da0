"""Per-role landing page summaries."""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.api.v1.attendance.service import attendance_summary
from school_admin.api.v1.enrollments.service import list_enrollments
from school_admin.api.v1.exams.service import list_my_marks
from school_admin.api.v1.invoices.service import list_invoices, list_parent_payments
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import SETTLED_INVOICE_STATUSES, InvoiceStatus
from school_admin.core.exceptions import PermissionDeniedError
from school_admin.core.models import Notice, Parent, SchoolClass, Student, Teacher
from school_admin.core.services import get_or_404

from .schemas import AdminDashboard, ChildSummary, FeeTotals, ParentDashboard, StudentDashboard

RECENT_LIMIT = 5


async def _count(db: AsyncSession, model, *criteria) -> int:
    return (await db.execute(select(func.count(model.id)).where(*criteria))).scalar() or 0


async def admin_dashboard(db: AsyncSession, caller: CurrentUser, today: Optional[date] = None) -> AdminDashboard:
    today = today or date.today()
    invoices = await list_invoices(db, caller, today=today)
    fees = FeeTotals()
    for inv in invoices:
        fees.invoiced += inv.total_amount
        fees.collected += inv.amount_paid
        if inv.status not in SETTLED_INVOICE_STATUSES:
            fees.outstanding += inv.balance_due
        if inv.status == InvoiceStatus.OVERDUE.value:
            fees.overdue_invoices += 1
    return AdminDashboard(
        students=await _count(db, Student),
        teachers=await _count(db, Teacher),
        parents=await _count(db, Parent),
        classes=await _count(db, SchoolClass),
        active_notices=await _count(
            db, Notice, Notice.is_active.is_(True), or_(Notice.expiry_date.is_(None), Notice.expiry_date >= today)
        ),
        fees=fees,
    )


async def parent_dashboard(db: AsyncSession, caller: CurrentUser) -> ParentDashboard:
    if caller.parent_id is None:
        raise PermissionDeniedError("No parent profile is linked to this account")
    children = []
    if caller.child_ids:
        result = await db.execute(
            select(Student).where(Student.id.in_(caller.child_ids)).order_by(Student.first_name)
        )
        children = [
            ChildSummary(student_id=s.id, full_name=s.full_name, class_id=s.class_id)
            for s in result.scalars().all()
        ]
    open_invoices = [
        inv for inv in await list_invoices(db, caller) if inv.status not in SETTLED_INVOICE_STATUSES
    ]
    payments = await list_parent_payments(db, caller)
    return ParentDashboard(
        children=children,
        open_invoices=open_invoices,
        outstanding_balance=sum((inv.balance_due for inv in open_invoices), Decimal("0")),
        recent_payments=payments[:RECENT_LIMIT],
    )


async def student_dashboard(db: AsyncSession, caller: CurrentUser) -> StudentDashboard:
    if caller.student_id is None:
        raise PermissionDeniedError("No student profile is linked to this account")
    student = await get_or_404(db, Student, caller.student_id, "Student")
    marks = await list_my_marks(db, caller)
    return StudentDashboard(
        student_id=student.id,
        full_name=student.full_name,
        enrollments=await list_enrollments(db, caller),
        recent_marks=marks[:RECENT_LIMIT],
        attendance=await attendance_summary(db, student.id),
    )
