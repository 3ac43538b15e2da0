from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.schemas import CurrentUser
from school_admin.core.exceptions import NotFoundError, ValidationError
from school_admin.core.models import Notice
from school_admin.core.services import get_or_404

from .schemas import NoticeCreate, NoticeResponse, NoticeUpdate


def _check_dates(publish_date: date, expiry_date: Optional[date]) -> None:
    if expiry_date is not None and expiry_date < publish_date:
        raise ValidationError("Expiry date cannot be before the publish date", field="expiry_date")


def _is_visible(notice: Notice, today: date) -> bool:
    return notice.is_active and (notice.expiry_date is None or notice.expiry_date >= today)


async def create_notice(db: AsyncSession, payload: NoticeCreate) -> NoticeResponse:
    publish_date = payload.publish_date or date.today()
    _check_dates(publish_date, payload.expiry_date)
    notice = Notice(
        title=payload.title.strip(),
        content=payload.content,
        publish_date=publish_date,
        expiry_date=payload.expiry_date,
        is_active=payload.is_active,
    )
    db.add(notice)
    await db.commit()
    await db.refresh(notice)
    return NoticeResponse.model_validate(notice)


async def list_notices(db: AsyncSession, caller: CurrentUser, today: Optional[date] = None) -> List[NoticeResponse]:
    """Admins see every notice; everyone else only active, unexpired ones."""
    today = today or date.today()
    stmt = select(Notice)
    if not caller.is_admin:
        stmt = stmt.where(
            Notice.is_active.is_(True),
            or_(Notice.expiry_date.is_(None), Notice.expiry_date >= today),
        )
    result = await db.execute(stmt.order_by(Notice.publish_date.desc()))
    return [NoticeResponse.model_validate(n) for n in result.scalars().all()]


async def get_notice(db: AsyncSession, caller: CurrentUser, notice_id: UUID) -> NoticeResponse:
    notice = await get_or_404(db, Notice, notice_id, "Notice")
    if not caller.is_admin and not _is_visible(notice, date.today()):
        raise NotFoundError("Notice not found")
    return NoticeResponse.model_validate(notice)


async def update_notice(db: AsyncSession, notice_id: UUID, payload: NoticeUpdate) -> NoticeResponse:
    notice = await get_or_404(db, Notice, notice_id, "Notice")
    if payload.title is not None:
        notice.title = payload.title.strip()
    if payload.content is not None:
        notice.content = payload.content
    if payload.publish_date is not None:
        notice.publish_date = payload.publish_date
    if payload.expiry_date is not None:
        notice.expiry_date = payload.expiry_date
    if payload.is_active is not None:
        notice.is_active = payload.is_active
    _check_dates(notice.publish_date, notice.expiry_date)
    await db.commit()
    await db.refresh(notice)
    return NoticeResponse.model_validate(notice)


async def delete_notice(db: AsyncSession, notice_id: UUID) -> None:
    notice = await get_or_404(db, Notice, notice_id, "Notice")
    await db.delete(notice)
    await db.commit()
