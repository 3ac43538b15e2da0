"""Students service. Deleting a student also removes their login account."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.policy import READ, ensure_allowed
from school_admin.auth.schemas import CurrentUser
from school_admin.auth.services import create_login_user, delete_login_user
from school_admin.auth.models import User
from school_admin.core.enums import UserRole
from school_admin.core.exceptions import NotFoundError
from school_admin.core.models import (
    Attendance,
    Enrollment,
    Invoice,
    Mark,
    Payment,
    SchoolClass,
    Student,
    StudentFee,
    StudentParent,
)
from school_admin.core.services import (
    clean,
    commit_unique,
    ensure_unique,
    ensure_unused,
    get_or_404,
    id_select,
)

from .schemas import StudentCreate, StudentResponse, StudentUpdate

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL = "A student with this email already exists."


async def _parent_ids(db: AsyncSession, student_id: UUID) -> List[UUID]:
    result = await db.execute(
        select(StudentParent.parent_id).where(StudentParent.student_id == student_id)
    )
    return list(result.scalars().all())


async def _to_response(db: AsyncSession, s: Student) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        first_name=s.first_name,
        last_name=s.last_name,
        full_name=s.full_name,
        email=s.email,
        phone_number=s.phone_number,
        address=s.address,
        enrollment_date=s.enrollment_date,
        date_of_birth=s.date_of_birth,
        gender=s.gender,
        class_id=s.class_id,
        user_id=s.user_id,
        parent_ids=await _parent_ids(db, s.id),
        created_at=s.created_at,
    )


async def create_student(db: AsyncSession, payload: StudentCreate) -> StudentResponse:
    email = payload.email.strip().lower()
    await ensure_unique(db, id_select(Student, Student.email == email), DUPLICATE_EMAIL, field="email")
    if payload.class_id is not None:
        await get_or_404(db, SchoolClass, payload.class_id, "Class")

    student = Student(
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        email=email,
        phone_number=clean(payload.phone_number),
        address=clean(payload.address),
        date_of_birth=payload.date_of_birth,
        gender=clean(payload.gender),
        class_id=payload.class_id,
    )
    if payload.enrollment_date is not None:
        student.enrollment_date = payload.enrollment_date
    if payload.password:
        user = await create_login_user(
            db, student.full_name, email, payload.password, UserRole.STUDENT.value
        )
        student.user_id = user.id
    db.add(student)
    await commit_unique(db, DUPLICATE_EMAIL, field="email")
    await db.refresh(student)
    logger.info("Created student %s (login=%s)", student.id, student.user_id is not None)
    return await _to_response(db, student)


async def list_students(
    db: AsyncSession,
    caller: CurrentUser,
    class_id: Optional[UUID] = None,
) -> List[StudentResponse]:
    stmt = select(Student)
    if caller.role == UserRole.STUDENT.value:
        stmt = stmt.where(Student.id == caller.student_id)
    elif caller.role == UserRole.PARENT.value:
        stmt = stmt.where(Student.id.in_(caller.child_ids))
    if class_id is not None:
        stmt = stmt.where(Student.class_id == class_id)
    stmt = stmt.order_by(Student.last_name, Student.first_name)
    result = await db.execute(stmt)
    return [await _to_response(db, s) for s in result.scalars().all()]


async def get_student(db: AsyncSession, caller: CurrentUser, student_id: UUID) -> StudentResponse:
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")
    ensure_allowed(caller, READ, student)
    return await _to_response(db, student)


async def update_student(db: AsyncSession, student_id: UUID, payload: StudentUpdate) -> StudentResponse:
    student = await get_or_404(db, Student, student_id, "Student")
    if payload.email is not None:
        email = payload.email.strip().lower()
        await ensure_unique(
            db, id_select(Student, Student.email == email), DUPLICATE_EMAIL,
            field="email", exclude=(Student.id, student_id),
        )
        student.email = email
    if payload.class_id is not None:
        await get_or_404(db, SchoolClass, payload.class_id, "Class")
        student.class_id = payload.class_id
    if payload.first_name is not None:
        student.first_name = payload.first_name.strip()
    if payload.last_name is not None:
        student.last_name = payload.last_name.strip()
    if payload.phone_number is not None:
        student.phone_number = clean(payload.phone_number)
    if payload.address is not None:
        student.address = clean(payload.address)
    if payload.enrollment_date is not None:
        student.enrollment_date = payload.enrollment_date
    if payload.date_of_birth is not None:
        student.date_of_birth = payload.date_of_birth
    if payload.gender is not None:
        student.gender = clean(payload.gender)

    if student.user_id is not None:
        user = await db.get(User, student.user_id)
        if user is not None:
            user.full_name = student.full_name
            user.email = student.email
    await commit_unique(db, DUPLICATE_EMAIL, field="email")
    await db.refresh(student)
    return await _to_response(db, student)


async def delete_student(db: AsyncSession, student_id: UUID) -> None:
    student = await get_or_404(db, Student, student_id, "Student")
    await ensure_unused(
        db,
        "student",
        [
            ("invoices", id_select(Invoice, Invoice.student_id == student_id)),
            ("payments", id_select(Payment, Payment.student_id == student_id)),
            ("enrollments", id_select(Enrollment, Enrollment.student_id == student_id)),
            ("attendance records", id_select(Attendance, Attendance.student_id == student_id)),
            ("marks", id_select(Mark, Mark.student_id == student_id)),
            ("student fees", id_select(StudentFee, StudentFee.student_id == student_id)),
        ],
    )
    user_id = student.user_id
    await db.execute(delete(StudentParent).where(StudentParent.student_id == student_id))
    await db.delete(student)
    await db.flush()
    await delete_login_user(db, user_id)
    await db.commit()
    logger.info("Deleted student %s and login user %s", student_id, user_id)
