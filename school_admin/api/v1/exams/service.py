"""
Exams and marks.

Teachers create and edit exams only for class/subject pairs they are
assigned to, and enter marks for their own exams. Admins are unrestricted.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.api.v1.teacher_assignments.service import ensure_assigned
from school_admin.auth.policy import DELETE, READ, UPDATE, ensure_allowed
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import UserRole
from school_admin.core.exceptions import PermissionDeniedError, ValidationError
from school_admin.core.models import Exam, Mark, SchoolClass, Student, Subject, Teacher
from school_admin.core.services import clean, commit_unique, ensure_unused, get_or_404, id_select

from .schemas import ExamCreate, ExamResponse, ExamUpdate, MarkResponse, MarksBulkEntry

logger = logging.getLogger(__name__)


# ----- Exams -----
async def create_exam(db: AsyncSession, caller: CurrentUser, payload: ExamCreate) -> ExamResponse:
    await get_or_404(db, SchoolClass, payload.class_id, "Class")
    await get_or_404(db, Subject, payload.subject_id, "Subject")
    if caller.is_admin:
        if payload.teacher_id is None:
            raise ValidationError("teacher_id is required", field="teacher_id")
        teacher_id = payload.teacher_id
        await get_or_404(db, Teacher, teacher_id, "Teacher")
    else:
        if caller.teacher_id is None:
            raise PermissionDeniedError("Only teachers can create exams")
        teacher_id = caller.teacher_id
        await ensure_assigned(db, caller, payload.class_id, payload.subject_id)

    exam = Exam(
        name=payload.name.strip(),
        description=clean(payload.description),
        exam_date=payload.exam_date,
        class_id=payload.class_id,
        subject_id=payload.subject_id,
        teacher_id=teacher_id,
        max_marks=payload.max_marks,
    )
    db.add(exam)
    await db.commit()
    await db.refresh(exam)
    logger.info("Created exam %s for class %s subject %s", exam.id, exam.class_id, exam.subject_id)
    return ExamResponse.model_validate(exam)


async def list_exams(
    db: AsyncSession,
    caller: CurrentUser,
    class_id: Optional[UUID] = None,
    subject_id: Optional[UUID] = None,
) -> List[ExamResponse]:
    stmt = select(Exam)
    if caller.role == UserRole.TEACHER.value:
        stmt = stmt.where(Exam.teacher_id == caller.teacher_id)
    elif caller.role == UserRole.STUDENT.value:
        student = await db.get(Student, caller.student_id) if caller.student_id else None
        stmt = stmt.where(Exam.class_id == (student.class_id if student else None))
    if class_id is not None:
        stmt = stmt.where(Exam.class_id == class_id)
    if subject_id is not None:
        stmt = stmt.where(Exam.subject_id == subject_id)
    result = await db.execute(stmt.order_by(Exam.exam_date.desc()))
    return [ExamResponse.model_validate(e) for e in result.scalars().all()]


async def get_exam(db: AsyncSession, caller: CurrentUser, exam_id: UUID) -> ExamResponse:
    exam = await get_or_404(db, Exam, exam_id, "Exam")
    ensure_allowed(caller, READ, exam)
    return ExamResponse.model_validate(exam)


async def update_exam(
    db: AsyncSession,
    caller: CurrentUser,
    exam_id: UUID,
    payload: ExamUpdate,
) -> ExamResponse:
    exam = await get_or_404(db, Exam, exam_id, "Exam")
    ensure_allowed(caller, UPDATE, exam)
    if payload.max_marks is not None:
        over = await db.execute(
            id_select(Mark, Mark.exam_id == exam_id, Mark.marks_obtained > payload.max_marks).limit(1)
        )
        if over.first() is not None:
            raise ValidationError("Existing marks exceed the new maximum", field="max_marks")
        exam.max_marks = payload.max_marks
    if payload.name is not None:
        exam.name = payload.name.strip()
    if payload.description is not None:
        exam.description = clean(payload.description)
    if payload.exam_date is not None:
        exam.exam_date = payload.exam_date
    await db.commit()
    await db.refresh(exam)
    return ExamResponse.model_validate(exam)


async def delete_exam(db: AsyncSession, caller: CurrentUser, exam_id: UUID) -> None:
    exam = await get_or_404(db, Exam, exam_id, "Exam")
    ensure_allowed(caller, DELETE, exam)
    await ensure_unused(db, "exam", [("marks", id_select(Mark, Mark.exam_id == exam_id))])
    await db.delete(exam)
    await db.commit()
    logger.info("Deleted exam %s", exam_id)


# ----- Marks -----
async def enter_marks(
    db: AsyncSession,
    caller: CurrentUser,
    exam_id: UUID,
    payload: MarksBulkEntry,
) -> List[MarkResponse]:
    """Insert or overwrite marks for an exam. Each value must lie in 0..max_marks."""
    exam = await get_or_404(db, Exam, exam_id, "Exam")
    ensure_allowed(caller, UPDATE, exam)
    for rec in payload.records:
        if exam.max_marks is not None and rec.marks_obtained > exam.max_marks:
            raise ValidationError(
                f"Marks for student {rec.student_id} exceed the maximum of {exam.max_marks}",
                field="marks_obtained",
            )

    result = await db.execute(select(Mark).where(Mark.exam_id == exam_id))
    existing = {m.student_id: m for m in result.scalars().all()}
    rows: List[Mark] = []
    for rec in payload.records:
        await get_or_404(db, Student, rec.student_id, "Student")
        mark = existing.get(rec.student_id)
        if mark is None:
            mark = Mark(
                exam_id=exam_id,
                student_id=rec.student_id,
                subject_id=exam.subject_id,
                class_id=exam.class_id,
            )
            db.add(mark)
            existing[rec.student_id] = mark
        mark.marks_obtained = rec.marks_obtained
        rows.append(mark)
    await commit_unique(db, "Marks already recorded for this student in this exam.")
    for mark in rows:
        await db.refresh(mark)
    logger.info("Entered %d marks for exam %s", len(rows), exam_id)
    return [MarkResponse.model_validate(m) for m in rows]


async def list_marks_for_exam(db: AsyncSession, caller: CurrentUser, exam_id: UUID) -> List[MarkResponse]:
    exam = await get_or_404(db, Exam, exam_id, "Exam")
    stmt = select(Mark).where(Mark.exam_id == exam_id)
    if caller.role == UserRole.TEACHER.value:
        ensure_allowed(caller, UPDATE, exam)
    elif caller.role == UserRole.STUDENT.value:
        stmt = stmt.where(Mark.student_id == caller.student_id)
    elif caller.role == UserRole.PARENT.value:
        stmt = stmt.where(Mark.student_id.in_(caller.child_ids))
    result = await db.execute(stmt)
    return [MarkResponse.model_validate(m) for m in result.scalars().all()]


async def _marks_for_students(db: AsyncSession, student_ids: List[UUID]) -> List[MarkResponse]:
    result = await db.execute(
        select(Mark).where(Mark.student_id.in_(student_ids)).order_by(Mark.date_recorded.desc())
    )
    return [MarkResponse.model_validate(m) for m in result.scalars().all()]


async def list_my_marks(db: AsyncSession, caller: CurrentUser) -> List[MarkResponse]:
    if caller.student_id is None:
        raise PermissionDeniedError("Only students have their own marks")
    return await _marks_for_students(db, [caller.student_id])


async def list_child_marks(db: AsyncSession, caller: CurrentUser, student_id: UUID) -> List[MarkResponse]:
    if student_id not in caller.child_ids:
        raise PermissionDeniedError("You can only view marks of your own children")
    return await _marks_for_students(db, [student_id])
