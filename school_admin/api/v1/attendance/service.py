"""Attendance service. Admin: any class; Teacher: assigned class/subject pairs only."""

import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.api.v1.teacher_assignments.service import ensure_assigned
from school_admin.auth.policy import READ, ensure_allowed
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import PRESENT_ATTENDANCE_STATUSES, AttendanceStatus, UserRole
from school_admin.core.exceptions import PermissionDeniedError, ValidationError
from school_admin.core.models import Attendance, SchoolClass, Student, Subject
from school_admin.core.services import commit_unique, ensure_unique, get_or_404, id_select

from .schemas import (
    AttendanceCreate,
    AttendanceResponse,
    AttendanceSummary,
    AttendanceUpdate,
    ClassAttendanceBulkMark,
)

logger = logging.getLogger(__name__)

DUPLICATE_ATTENDANCE = "Attendance already marked for this student, class, subject and date."


def _check_date(day: date) -> None:
    if day > date.today():
        raise ValidationError("Cannot mark attendance for future dates", field="attendance_date")


def _apply_status(att: Attendance, status: AttendanceStatus) -> None:
    att.status = status.value
    att.is_present = status.value in PRESENT_ATTENDANCE_STATUSES


async def create_attendance(
    db: AsyncSession,
    caller: CurrentUser,
    payload: AttendanceCreate,
) -> AttendanceResponse:
    _check_date(payload.attendance_date)
    await get_or_404(db, Student, payload.student_id, "Student")
    await get_or_404(db, SchoolClass, payload.class_id, "Class")
    await get_or_404(db, Subject, payload.subject_id, "Subject")
    await ensure_assigned(db, caller, payload.class_id, payload.subject_id)
    await ensure_unique(
        db,
        id_select(
            Attendance,
            Attendance.student_id == payload.student_id,
            Attendance.class_id == payload.class_id,
            Attendance.subject_id == payload.subject_id,
            Attendance.attendance_date == payload.attendance_date,
        ),
        DUPLICATE_ATTENDANCE,
    )
    att = Attendance(
        student_id=payload.student_id,
        class_id=payload.class_id,
        subject_id=payload.subject_id,
        attendance_date=payload.attendance_date,
        marked_by=caller.teacher_id,
    )
    _apply_status(att, payload.status)
    db.add(att)
    await commit_unique(db, DUPLICATE_ATTENDANCE)
    await db.refresh(att)
    return AttendanceResponse.model_validate(att)


async def mark_class_attendance(
    db: AsyncSession,
    caller: CurrentUser,
    payload: ClassAttendanceBulkMark,
) -> List[AttendanceResponse]:
    """Insert or overwrite one row per student for (class, subject, date)."""
    _check_date(payload.attendance_date)
    await get_or_404(db, SchoolClass, payload.class_id, "Class")
    await get_or_404(db, Subject, payload.subject_id, "Subject")
    await ensure_assigned(db, caller, payload.class_id, payload.subject_id)

    result = await db.execute(
        select(Attendance).where(
            Attendance.class_id == payload.class_id,
            Attendance.subject_id == payload.subject_id,
            Attendance.attendance_date == payload.attendance_date,
        )
    )
    existing = {a.student_id: a for a in result.scalars().all()}

    rows: List[Attendance] = []
    for rec in payload.records:
        await get_or_404(db, Student, rec.student_id, "Student")
        att = existing.get(rec.student_id)
        if att is None:
            att = Attendance(
                student_id=rec.student_id,
                class_id=payload.class_id,
                subject_id=payload.subject_id,
                attendance_date=payload.attendance_date,
            )
            db.add(att)
            existing[rec.student_id] = att
        _apply_status(att, rec.status)
        att.marked_by = caller.teacher_id
        rows.append(att)
    await commit_unique(db, DUPLICATE_ATTENDANCE)
    for att in rows:
        await db.refresh(att)
    logger.info(
        "Marked %d attendance rows for class %s subject %s on %s",
        len(rows), payload.class_id, payload.subject_id, payload.attendance_date,
    )
    return [AttendanceResponse.model_validate(a) for a in rows]


async def list_attendance(
    db: AsyncSession,
    caller: CurrentUser,
    student_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    subject_id: Optional[UUID] = None,
    attendance_date: Optional[date] = None,
) -> List[AttendanceResponse]:
    stmt = select(Attendance)
    if caller.role == UserRole.STUDENT.value:
        stmt = stmt.where(Attendance.student_id == caller.student_id)
    elif caller.role == UserRole.PARENT.value:
        stmt = stmt.where(Attendance.student_id.in_(caller.child_ids))
    if student_id is not None:
        stmt = stmt.where(Attendance.student_id == student_id)
    if class_id is not None:
        stmt = stmt.where(Attendance.class_id == class_id)
    if subject_id is not None:
        stmt = stmt.where(Attendance.subject_id == subject_id)
    if attendance_date is not None:
        stmt = stmt.where(Attendance.attendance_date == attendance_date)
    result = await db.execute(stmt.order_by(Attendance.attendance_date.desc()))
    return [AttendanceResponse.model_validate(a) for a in result.scalars().all()]


async def list_my_attendance(db: AsyncSession, caller: CurrentUser) -> List[AttendanceResponse]:
    if caller.student_id is None:
        raise PermissionDeniedError("Only students have their own attendance")
    return await list_attendance(db, caller, student_id=caller.student_id)


async def get_attendance(db: AsyncSession, caller: CurrentUser, attendance_id: UUID) -> AttendanceResponse:
    att = await get_or_404(db, Attendance, attendance_id, "Attendance record")
    ensure_allowed(caller, READ, att)
    return AttendanceResponse.model_validate(att)


async def update_attendance(
    db: AsyncSession,
    caller: CurrentUser,
    attendance_id: UUID,
    payload: AttendanceUpdate,
) -> AttendanceResponse:
    att = await get_or_404(db, Attendance, attendance_id, "Attendance record")
    await ensure_assigned(db, caller, att.class_id, att.subject_id)
    _apply_status(att, payload.status)
    if caller.teacher_id is not None:
        att.marked_by = caller.teacher_id
    await db.commit()
    await db.refresh(att)
    return AttendanceResponse.model_validate(att)


async def delete_attendance(db: AsyncSession, attendance_id: UUID) -> None:
    att = await get_or_404(db, Attendance, attendance_id, "Attendance record")
    await db.delete(att)
    await db.commit()


async def attendance_summary(db: AsyncSession, student_id: UUID) -> AttendanceSummary:
    result = await db.execute(
        select(Attendance.status, func.count(Attendance.id))
        .where(Attendance.student_id == student_id)
        .group_by(Attendance.status)
    )
    counts = {status_val: cnt for status_val, cnt in result.all()}
    total = sum(counts.values())
    present = sum(counts.get(s, 0) for s in PRESENT_ATTENDANCE_STATUSES)
    return AttendanceSummary(
        total=total,
        present=counts.get(AttendanceStatus.PRESENT.value, 0),
        absent=counts.get(AttendanceStatus.ABSENT.value, 0),
        late=counts.get(AttendanceStatus.LATE.value, 0),
        excused=counts.get(AttendanceStatus.EXCUSED.value, 0),
        attendance_rate=round(present * 100.0 / total, 1) if total else 0.0,
    )
