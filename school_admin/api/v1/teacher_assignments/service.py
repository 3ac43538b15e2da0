import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.schemas import CurrentUser
from school_admin.core.exceptions import PermissionDeniedError
from school_admin.core.models import SchoolClass, Subject, Teacher, TeacherClassSubject
from school_admin.core.services import commit_unique, ensure_unique, exists, get_or_404, id_select

from .schemas import TeacherAssignmentCreate, TeacherAssignmentResponse, TeacherAssignmentUpdate

logger = logging.getLogger(__name__)

DUPLICATE_ASSIGNMENT = "This teacher is already assigned to this subject in this class."


async def is_assigned(db: AsyncSession, teacher_id: Optional[UUID], class_id: UUID, subject_id: UUID) -> bool:
    """True when the teacher teaches the subject in the class."""
    if teacher_id is None:
        return False
    return await exists(
        db,
        id_select(
            TeacherClassSubject,
            TeacherClassSubject.teacher_id == teacher_id,
            TeacherClassSubject.class_id == class_id,
            TeacherClassSubject.subject_id == subject_id,
        ),
    )


async def ensure_assigned(db: AsyncSession, caller: CurrentUser, class_id: UUID, subject_id: UUID) -> None:
    """Admins pass; teachers must be assigned to the class/subject pair."""
    if caller.is_admin:
        return
    if not await is_assigned(db, caller.teacher_id, class_id, subject_id):
        raise PermissionDeniedError("You are not assigned to teach this subject in this class")


async def _validate_refs(db: AsyncSession, teacher_id: UUID, class_id: UUID, subject_id: UUID) -> None:
    await get_or_404(db, Teacher, teacher_id, "Teacher")
    await get_or_404(db, SchoolClass, class_id, "Class")
    await get_or_404(db, Subject, subject_id, "Subject")


def _same_assignment(teacher_id: UUID, class_id: UUID, subject_id: UUID):
    return id_select(
        TeacherClassSubject,
        TeacherClassSubject.teacher_id == teacher_id,
        TeacherClassSubject.class_id == class_id,
        TeacherClassSubject.subject_id == subject_id,
    )


async def create_assignment(db: AsyncSession, payload: TeacherAssignmentCreate) -> TeacherAssignmentResponse:
    await _validate_refs(db, payload.teacher_id, payload.class_id, payload.subject_id)
    await ensure_unique(
        db, _same_assignment(payload.teacher_id, payload.class_id, payload.subject_id), DUPLICATE_ASSIGNMENT
    )
    assignment = TeacherClassSubject(
        teacher_id=payload.teacher_id,
        class_id=payload.class_id,
        subject_id=payload.subject_id,
    )
    if payload.assignment_date is not None:
        assignment.assignment_date = payload.assignment_date
    db.add(assignment)
    await commit_unique(db, DUPLICATE_ASSIGNMENT)
    await db.refresh(assignment)
    logger.info(
        "Assigned teacher %s to class %s subject %s",
        payload.teacher_id, payload.class_id, payload.subject_id,
    )
    return TeacherAssignmentResponse.model_validate(assignment)


async def list_assignments(
    db: AsyncSession,
    teacher_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
) -> List[TeacherAssignmentResponse]:
    stmt = select(TeacherClassSubject)
    if teacher_id is not None:
        stmt = stmt.where(TeacherClassSubject.teacher_id == teacher_id)
    if class_id is not None:
        stmt = stmt.where(TeacherClassSubject.class_id == class_id)
    result = await db.execute(stmt.order_by(TeacherClassSubject.assignment_date.desc()))
    return [TeacherAssignmentResponse.model_validate(a) for a in result.scalars().all()]


async def list_my_assignments(db: AsyncSession, caller: CurrentUser) -> List[TeacherAssignmentResponse]:
    if caller.teacher_id is None:
        raise PermissionDeniedError("Only teachers have class assignments")
    return await list_assignments(db, teacher_id=caller.teacher_id)


async def get_assignment(db: AsyncSession, assignment_id: UUID) -> TeacherAssignmentResponse:
    assignment = await get_or_404(db, TeacherClassSubject, assignment_id, "Teacher assignment")
    return TeacherAssignmentResponse.model_validate(assignment)


async def update_assignment(
    db: AsyncSession,
    assignment_id: UUID,
    payload: TeacherAssignmentUpdate,
) -> TeacherAssignmentResponse:
    assignment = await get_or_404(db, TeacherClassSubject, assignment_id, "Teacher assignment")
    teacher_id = payload.teacher_id or assignment.teacher_id
    class_id = payload.class_id or assignment.class_id
    subject_id = payload.subject_id or assignment.subject_id
    await _validate_refs(db, teacher_id, class_id, subject_id)
    await ensure_unique(
        db, _same_assignment(teacher_id, class_id, subject_id), DUPLICATE_ASSIGNMENT,
        exclude=(TeacherClassSubject.id, assignment_id),
    )
    assignment.teacher_id = teacher_id
    assignment.class_id = class_id
    assignment.subject_id = subject_id
    if payload.assignment_date is not None:
        assignment.assignment_date = payload.assignment_date
    await commit_unique(db, DUPLICATE_ASSIGNMENT)
    await db.refresh(assignment)
    return TeacherAssignmentResponse.model_validate(assignment)


async def delete_assignment(db: AsyncSession, assignment_id: UUID) -> None:
    assignment = await get_or_404(db, TeacherClassSubject, assignment_id, "Teacher assignment")
    await db.delete(assignment)
    await db.commit()
    logger.info("Removed teacher assignment %s", assignment_id)
