import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.core.models import (
    Attendance,
    Enrollment,
    Exam,
    Mark,
    Subject,
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

from .schemas import SubjectCreate, SubjectResponse, SubjectUpdate

logger = logging.getLogger(__name__)


def _conflict_message(code: str) -> str:
    return f"Subject code '{code}' already exists."


def _normalize_code(code: Optional[str]) -> Optional[str]:
    code = clean(code)
    return code.upper() if code else None


async def create_subject(db: AsyncSession, payload: SubjectCreate) -> SubjectResponse:
    code = _normalize_code(payload.code)
    if code is not None:
        await ensure_unique(db, id_select(Subject, Subject.code == code), _conflict_message(code), field="code")
    subject = Subject(name=payload.name.strip(), code=code, description=clean(payload.description))
    db.add(subject)
    await commit_unique(db, _conflict_message(code or ""), field="code")
    await db.refresh(subject)
    return SubjectResponse.model_validate(subject)


async def list_subjects(db: AsyncSession) -> List[SubjectResponse]:
    result = await db.execute(select(Subject).order_by(Subject.name))
    return [SubjectResponse.model_validate(s) for s in result.scalars().all()]


async def get_subject(db: AsyncSession, subject_id: UUID) -> SubjectResponse:
    return SubjectResponse.model_validate(await get_or_404(db, Subject, subject_id, "Subject"))


async def update_subject(db: AsyncSession, subject_id: UUID, payload: SubjectUpdate) -> SubjectResponse:
    subject = await get_or_404(db, Subject, subject_id, "Subject")
    if payload.code is not None:
        code = _normalize_code(payload.code)
        if code is not None:
            await ensure_unique(
                db, id_select(Subject, Subject.code == code), _conflict_message(code),
                field="code", exclude=(Subject.id, subject_id),
            )
        subject.code = code
    if payload.name is not None:
        subject.name = payload.name.strip()
    if payload.description is not None:
        subject.description = clean(payload.description)
    await commit_unique(db, _conflict_message(subject.code or ""), field="code")
    await db.refresh(subject)
    return SubjectResponse.model_validate(subject)


async def delete_subject(db: AsyncSession, subject_id: UUID) -> None:
    subject = await get_or_404(db, Subject, subject_id, "Subject")
    await ensure_unused(
        db,
        "subject",
        [
            ("enrollments", id_select(Enrollment, Enrollment.subject_id == subject_id)),
            ("attendance records", id_select(Attendance, Attendance.subject_id == subject_id)),
            ("exams", id_select(Exam, Exam.subject_id == subject_id)),
            ("marks", id_select(Mark, Mark.subject_id == subject_id)),
            ("teacher assignments", id_select(TeacherClassSubject, TeacherClassSubject.subject_id == subject_id)),
        ],
    )
    await db.delete(subject)
    await db.commit()
    logger.info("Deleted subject %s", subject_id)
