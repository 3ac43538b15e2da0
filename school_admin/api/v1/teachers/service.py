import logging
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.models import User
from school_admin.auth.policy import UPDATE, ensure_allowed
from school_admin.auth.schemas import CurrentUser
from school_admin.auth.services import create_login_user, delete_login_user
from school_admin.core.enums import UserRole
from school_admin.core.models import Attendance, Exam, Teacher, TeacherClassSubject
from school_admin.core.services import (
    clean,
    commit_unique,
    ensure_unique,
    ensure_unused,
    get_or_404,
    id_select,
)

from .schemas import TeacherCreate, TeacherResponse, TeacherUpdate

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL = "A teacher with this email already exists."


def _to_response(t: Teacher) -> TeacherResponse:
    return TeacherResponse.model_validate(t)


async def create_teacher(db: AsyncSession, payload: TeacherCreate) -> TeacherResponse:
    email = payload.email.strip().lower()
    await ensure_unique(db, id_select(Teacher, Teacher.email == email), DUPLICATE_EMAIL, field="email")
    teacher = Teacher(
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        email=email,
        phone_number=clean(payload.phone_number),
        address=clean(payload.address),
        subject_taught=clean(payload.subject_taught),
    )
    if payload.date_of_joining is not None:
        teacher.date_of_joining = payload.date_of_joining
    if payload.password:
        user = await create_login_user(
            db, teacher.full_name, email, payload.password, UserRole.TEACHER.value
        )
        teacher.user_id = user.id
    db.add(teacher)
    await commit_unique(db, DUPLICATE_EMAIL, field="email")
    await db.refresh(teacher)
    logger.info("Created teacher %s", teacher.id)
    return _to_response(teacher)


async def list_teachers(db: AsyncSession) -> List[TeacherResponse]:
    result = await db.execute(select(Teacher).order_by(Teacher.last_name, Teacher.first_name))
    return [_to_response(t) for t in result.scalars().all()]


async def get_teacher(db: AsyncSession, teacher_id: UUID) -> TeacherResponse:
    return _to_response(await get_or_404(db, Teacher, teacher_id, "Teacher"))


async def update_teacher(
    db: AsyncSession,
    caller: CurrentUser,
    teacher_id: UUID,
    payload: TeacherUpdate,
) -> TeacherResponse:
    """Admins edit any teacher; a teacher may edit only their own profile."""
    teacher = await get_or_404(db, Teacher, teacher_id, "Teacher")
    ensure_allowed(caller, UPDATE, teacher)
    if payload.email is not None:
        email = payload.email.strip().lower()
        await ensure_unique(
            db, id_select(Teacher, Teacher.email == email), DUPLICATE_EMAIL,
            field="email", exclude=(Teacher.id, teacher_id),
        )
        teacher.email = email
    if payload.first_name is not None:
        teacher.first_name = payload.first_name.strip()
    if payload.last_name is not None:
        teacher.last_name = payload.last_name.strip()
    if payload.phone_number is not None:
        teacher.phone_number = clean(payload.phone_number)
    if payload.address is not None:
        teacher.address = clean(payload.address)
    if payload.date_of_joining is not None:
        teacher.date_of_joining = payload.date_of_joining
    if payload.subject_taught is not None:
        teacher.subject_taught = clean(payload.subject_taught)
    if teacher.user_id is not None:
        user = await db.get(User, teacher.user_id)
        if user is not None:
            user.full_name = teacher.full_name
            user.email = teacher.email
    await commit_unique(db, DUPLICATE_EMAIL, field="email")
    await db.refresh(teacher)
    return _to_response(teacher)


async def delete_teacher(db: AsyncSession, teacher_id: UUID) -> None:
    teacher = await get_or_404(db, Teacher, teacher_id, "Teacher")
    await ensure_unused(
        db,
        "teacher",
        [
            ("class assignments", id_select(TeacherClassSubject, TeacherClassSubject.teacher_id == teacher_id)),
            ("exams", id_select(Exam, Exam.teacher_id == teacher_id)),
        ],
    )
    user_id = teacher.user_id
    # Attendance keeps its rows; only the marker reference goes
    for att in (await db.execute(select(Attendance).where(Attendance.marked_by == teacher_id))).scalars():
        att.marked_by = None
    await db.delete(teacher)
    await db.flush()
    await delete_login_user(db, user_id)
    await db.commit()
    logger.info("Deleted teacher %s and login user %s", teacher_id, user_id)
