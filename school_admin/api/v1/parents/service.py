"""Parents service, including the student/parent links."""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.models import User
from school_admin.auth.policy import READ, ensure_allowed
from school_admin.auth.schemas import CurrentUser
from school_admin.auth.services import create_login_user, delete_login_user
from school_admin.core.enums import UserRole
from school_admin.core.exceptions import StateConflictError
from school_admin.core.models import Invoice, Parent, Payment, Student, StudentParent
from school_admin.core.services import (
    clean,
    commit_unique,
    ensure_unique,
    ensure_unused,
    exists,
    get_or_404,
    id_select,
)

from .schemas import ParentCreate, ParentResponse, ParentUpdate

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL = "A parent with this email already exists."


async def _student_ids(db: AsyncSession, parent_id: UUID) -> List[UUID]:
    result = await db.execute(
        select(StudentParent.student_id).where(StudentParent.parent_id == parent_id)
    )
    return list(result.scalars().all())


async def _to_response(db: AsyncSession, p: Parent) -> ParentResponse:
    return ParentResponse(
        id=p.id,
        first_name=p.first_name,
        last_name=p.last_name,
        full_name=p.full_name,
        email=p.email,
        phone_number=p.phone_number,
        user_id=p.user_id,
        student_ids=await _student_ids(db, p.id),
        created_at=p.created_at,
    )


async def create_parent(db: AsyncSession, payload: ParentCreate) -> ParentResponse:
    email = payload.email.strip().lower()
    await ensure_unique(db, id_select(Parent, Parent.email == email), DUPLICATE_EMAIL, field="email")
    student_ids = list(dict.fromkeys(payload.student_ids))
    for sid in student_ids:
        await get_or_404(db, Student, sid, "Student")

    parent = Parent(
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        email=email,
        phone_number=clean(payload.phone_number),
    )
    if payload.password:
        user = await create_login_user(
            db, parent.full_name, email, payload.password, UserRole.PARENT.value
        )
        parent.user_id = user.id
    db.add(parent)
    await db.flush()
    for sid in student_ids:
        db.add(StudentParent(student_id=sid, parent_id=parent.id))
    await commit_unique(db, DUPLICATE_EMAIL, field="email")
    await db.refresh(parent)
    logger.info("Created parent %s linked to %d students", parent.id, len(student_ids))
    return await _to_response(db, parent)


async def list_parents(db: AsyncSession, caller: CurrentUser) -> List[ParentResponse]:
    stmt = select(Parent)
    if caller.role == UserRole.PARENT.value:
        stmt = stmt.where(Parent.id == caller.parent_id)
    result = await db.execute(stmt.order_by(Parent.last_name, Parent.first_name))
    return [await _to_response(db, p) for p in result.scalars().all()]


async def get_parent(db: AsyncSession, caller: CurrentUser, parent_id: UUID) -> ParentResponse:
    parent = await get_or_404(db, Parent, parent_id, "Parent")
    ensure_allowed(caller, READ, parent)
    return await _to_response(db, parent)


async def update_parent(db: AsyncSession, parent_id: UUID, payload: ParentUpdate) -> ParentResponse:
    parent = await get_or_404(db, Parent, parent_id, "Parent")
    if payload.email is not None:
        email = payload.email.strip().lower()
        await ensure_unique(
            db, id_select(Parent, Parent.email == email), DUPLICATE_EMAIL,
            field="email", exclude=(Parent.id, parent_id),
        )
        parent.email = email
    if payload.first_name is not None:
        parent.first_name = payload.first_name.strip()
    if payload.last_name is not None:
        parent.last_name = payload.last_name.strip()
    if payload.phone_number is not None:
        parent.phone_number = clean(payload.phone_number)
    if parent.user_id is not None:
        user = await db.get(User, parent.user_id)
        if user is not None:
            user.full_name = parent.full_name
            user.email = parent.email
    await commit_unique(db, DUPLICATE_EMAIL, field="email")
    await db.refresh(parent)
    return await _to_response(db, parent)


async def delete_parent(db: AsyncSession, parent_id: UUID) -> None:
    parent = await get_or_404(db, Parent, parent_id, "Parent")
    await ensure_unused(
        db,
        "parent",
        [
            ("invoices", id_select(Invoice, Invoice.parent_id == parent_id)),
            ("payments", id_select(Payment, Payment.parent_id == parent_id)),
        ],
    )
    user_id = parent.user_id
    await db.execute(delete(StudentParent).where(StudentParent.parent_id == parent_id))
    await db.delete(parent)
    await db.flush()
    await delete_login_user(db, user_id)
    await db.commit()
    logger.info("Deleted parent %s and login user %s", parent_id, user_id)


async def link_student(db: AsyncSession, parent_id: UUID, student_id: UUID) -> ParentResponse:
    parent = await get_or_404(db, Parent, parent_id, "Parent")
    await get_or_404(db, Student, student_id, "Student")
    link = await db.get(StudentParent, (student_id, parent_id))
    if link is None:
        db.add(StudentParent(student_id=student_id, parent_id=parent_id))
        await db.commit()
        logger.info("Linked student %s to parent %s", student_id, parent_id)
    return await _to_response(db, parent)


async def unlink_student(db: AsyncSession, parent_id: UUID, student_id: UUID) -> ParentResponse:
    """Remove a link. Refused while the parent owes an invoice for that student."""
    parent = await get_or_404(db, Parent, parent_id, "Parent")
    link = await db.get(StudentParent, (student_id, parent_id))
    if link is None:
        raise StateConflictError("Student is not linked to this parent")
    if await exists(
        db,
        id_select(Invoice, Invoice.parent_id == parent_id, Invoice.student_id == student_id),
    ):
        raise StateConflictError("Cannot unlink: the parent is responsible for invoices of this student")
    await db.delete(link)
    await db.commit()
    logger.info("Unlinked student %s from parent %s", student_id, parent_id)
    return await _to_response(db, parent)


async def list_parents_for_student(
    db: AsyncSession,
    caller: CurrentUser,
    student_id: UUID,
) -> List[ParentResponse]:
    student = await get_or_404(db, Student, student_id, "Student")
    ensure_allowed(caller, READ, student)
    result = await db.execute(
        select(Parent)
        .join(StudentParent, StudentParent.parent_id == Parent.id)
        .where(StudentParent.student_id == student_id)
        .order_by(Parent.last_name, Parent.first_name)
    )
    return [await _to_response(db, p) for p in result.scalars().all()]
