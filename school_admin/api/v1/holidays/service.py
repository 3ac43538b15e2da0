from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.core.models import Holiday
from school_admin.core.services import clean, get_or_404

from .schemas import HolidayCreate, HolidayResponse, HolidayUpdate


async def create_holiday(db: AsyncSession, payload: HolidayCreate) -> HolidayResponse:
    holiday = Holiday(
        title=payload.title.strip(),
        holiday_date=payload.holiday_date,
        description=clean(payload.description),
    )
    db.add(holiday)
    await db.commit()
    await db.refresh(holiday)
    return HolidayResponse.model_validate(holiday)


async def list_holidays(db: AsyncSession, upcoming_from: Optional[date] = None) -> List[HolidayResponse]:
    stmt = select(Holiday)
    if upcoming_from is not None:
        stmt = stmt.where(Holiday.holiday_date >= upcoming_from)
    result = await db.execute(stmt.order_by(Holiday.holiday_date))
    return [HolidayResponse.model_validate(h) for h in result.scalars().all()]


async def get_holiday(db: AsyncSession, holiday_id: UUID) -> HolidayResponse:
    return HolidayResponse.model_validate(await get_or_404(db, Holiday, holiday_id, "Holiday"))


async def update_holiday(db: AsyncSession, holiday_id: UUID, payload: HolidayUpdate) -> HolidayResponse:
    holiday = await get_or_404(db, Holiday, holiday_id, "Holiday")
    if payload.title is not None:
        holiday.title = payload.title.strip()
    if payload.holiday_date is not None:
        holiday.holiday_date = payload.holiday_date
    if payload.description is not None:
        holiday.description = clean(payload.description)
    await db.commit()
    await db.refresh(holiday)
    return HolidayResponse.model_validate(holiday)


async def delete_holiday(db: AsyncSession, holiday_id: UUID) -> None:
    holiday = await get_or_404(db, Holiday, holiday_id, "Holiday")
    await db.delete(holiday)
    await db.commit()
