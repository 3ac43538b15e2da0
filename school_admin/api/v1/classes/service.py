import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.core.models import (
    Attendance,
    ClassFee,
    Enrollment,
    Exam,
    Mark,
    SchoolClass,
    Student,
    TeacherClassSubject,
)
from school_admin.core.services import (
    clean,
    commit_unique,
    ensure_unique,
    ensure_unused,
    get_or_404,
    id_select,
)

from .schemas import ClassCreate, ClassResponse, ClassUpdate

logger = logging.getLogger(__name__)

DUPLICATE_CLASS = "A class with this name and section already exists."


def _to_response(c: SchoolClass) -> ClassResponse:
    return ClassResponse.model_validate(c)


def _same_name_section(name: str, section: Optional[str]):
    if section is None:
        return id_select(SchoolClass, SchoolClass.name == name, SchoolClass.section.is_(None))
    return id_select(SchoolClass, SchoolClass.name == name, SchoolClass.section == section)


async def create_class(db: AsyncSession, payload: ClassCreate) -> ClassResponse:
    name = payload.name.strip()
    section = clean(payload.section)
    await ensure_unique(db, _same_name_section(name, section), DUPLICATE_CLASS, field="name")
    school_class = SchoolClass(
        name=name,
        section=section,
        year_level=payload.year_level,
        description=clean(payload.description),
    )
    db.add(school_class)
    await commit_unique(db, DUPLICATE_CLASS, field="name")
    await db.refresh(school_class)
    return _to_response(school_class)


async def list_classes(db: AsyncSession) -> List[ClassResponse]:
    result = await db.execute(select(SchoolClass).order_by(SchoolClass.name, SchoolClass.section))
    return [_to_response(c) for c in result.scalars().all()]


async def get_class(db: AsyncSession, class_id: UUID) -> ClassResponse:
    return _to_response(await get_or_404(db, SchoolClass, class_id, "Class"))


async def update_class(db: AsyncSession, class_id: UUID, payload: ClassUpdate) -> ClassResponse:
    school_class = await get_or_404(db, SchoolClass, class_id, "Class")
    name = payload.name.strip() if payload.name is not None else school_class.name
    section = clean(payload.section) if payload.section is not None else school_class.section
    if name != school_class.name or section != school_class.section:
        await ensure_unique(
            db, _same_name_section(name, section), DUPLICATE_CLASS,
            field="name", exclude=(SchoolClass.id, class_id),
        )
    school_class.name = name
    school_class.section = section
    if payload.year_level is not None:
        school_class.year_level = payload.year_level
    if payload.description is not None:
        school_class.description = clean(payload.description)
    await commit_unique(db, DUPLICATE_CLASS, field="name")
    await db.refresh(school_class)
    return _to_response(school_class)


async def delete_class(db: AsyncSession, class_id: UUID) -> None:
    school_class = await get_or_404(db, SchoolClass, class_id, "Class")
    await ensure_unused(
        db,
        "class",
        [
            ("students", id_select(Student, Student.class_id == class_id)),
            ("enrollments", id_select(Enrollment, Enrollment.class_id == class_id)),
            ("attendance records", id_select(Attendance, Attendance.class_id == class_id)),
            ("exams", id_select(Exam, Exam.class_id == class_id)),
            ("marks", id_select(Mark, Mark.class_id == class_id)),
            ("teacher assignments", id_select(TeacherClassSubject, TeacherClassSubject.class_id == class_id)),
            ("class fees", id_select(ClassFee, ClassFee.class_id == class_id)),
        ],
    )
    await db.delete(school_class)
    await db.commit()
    logger.info("Deleted class %s", class_id)
