import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.policy import READ, ensure_allowed
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import UserRole
from school_admin.core.models import Enrollment, SchoolClass, Student, Subject
from school_admin.core.services import commit_unique, ensure_unique, get_or_404, id_select

from .schemas import EnrollmentCreate, EnrollmentResponse, EnrollmentUpdate

logger = logging.getLogger(__name__)

DUPLICATE_ENROLLMENT = "Student is already enrolled in this class."


async def create_enrollment(db: AsyncSession, payload: EnrollmentCreate) -> EnrollmentResponse:
    await get_or_404(db, Student, payload.student_id, "Student")
    await get_or_404(db, SchoolClass, payload.class_id, "Class")
    if payload.subject_id is not None:
        await get_or_404(db, Subject, payload.subject_id, "Subject")
    await ensure_unique(
        db,
        id_select(Enrollment, Enrollment.student_id == payload.student_id, Enrollment.class_id == payload.class_id),
        DUPLICATE_ENROLLMENT,
        field="class_id",
    )
    enrollment = Enrollment(
        student_id=payload.student_id,
        class_id=payload.class_id,
        subject_id=payload.subject_id,
        status=payload.status.value,
    )
    if payload.enrollment_date is not None:
        enrollment.enrollment_date = payload.enrollment_date
    db.add(enrollment)
    await commit_unique(db, DUPLICATE_ENROLLMENT, field="class_id")
    await db.refresh(enrollment)
    logger.info("Enrolled student %s in class %s", payload.student_id, payload.class_id)
    return EnrollmentResponse.model_validate(enrollment)


async def list_enrollments(
    db: AsyncSession,
    caller: CurrentUser,
    student_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
) -> List[EnrollmentResponse]:
    stmt = select(Enrollment)
    if caller.role == UserRole.STUDENT.value:
        stmt = stmt.where(Enrollment.student_id == caller.student_id)
    elif caller.role == UserRole.PARENT.value:
        stmt = stmt.where(Enrollment.student_id.in_(caller.child_ids))
    if student_id is not None:
        stmt = stmt.where(Enrollment.student_id == student_id)
    if class_id is not None:
        stmt = stmt.where(Enrollment.class_id == class_id)
    result = await db.execute(stmt.order_by(Enrollment.enrollment_date.desc()))
    return [EnrollmentResponse.model_validate(e) for e in result.scalars().all()]


async def get_enrollment(db: AsyncSession, caller: CurrentUser, enrollment_id: UUID) -> EnrollmentResponse:
    enrollment = await get_or_404(db, Enrollment, enrollment_id, "Enrollment")
    ensure_allowed(caller, READ, enrollment)
    return EnrollmentResponse.model_validate(enrollment)


async def update_enrollment(
    db: AsyncSession,
    enrollment_id: UUID,
    payload: EnrollmentUpdate,
) -> EnrollmentResponse:
    enrollment = await get_or_404(db, Enrollment, enrollment_id, "Enrollment")
    if payload.class_id is not None and payload.class_id != enrollment.class_id:
        await get_or_404(db, SchoolClass, payload.class_id, "Class")
        await ensure_unique(
            db,
            id_select(Enrollment, Enrollment.student_id == enrollment.student_id, Enrollment.class_id == payload.class_id),
            DUPLICATE_ENROLLMENT,
            field="class_id",
            exclude=(Enrollment.id, enrollment_id),
        )
        enrollment.class_id = payload.class_id
    if payload.subject_id is not None:
        await get_or_404(db, Subject, payload.subject_id, "Subject")
        enrollment.subject_id = payload.subject_id
    if payload.enrollment_date is not None:
        enrollment.enrollment_date = payload.enrollment_date
    if payload.status is not None:
        enrollment.status = payload.status.value
    await commit_unique(db, DUPLICATE_ENROLLMENT, field="class_id")
    await db.refresh(enrollment)
    return EnrollmentResponse.model_validate(enrollment)


async def delete_enrollment(db: AsyncSession, enrollment_id: UUID) -> None:
    enrollment = await get_or_404(db, Enrollment, enrollment_id, "Enrollment")
    await db.delete(enrollment)
    await db.commit()
