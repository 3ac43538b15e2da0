from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.rbac import check_permission
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

from .schemas import HolidayCreate, HolidayResponse, HolidayUpdate
from . import service

router = APIRouter(prefix="/api/v1/holidays", tags=["holidays"])


@router.post(
    "",
    response_model=HolidayResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("holidays", "create"))],
)
async def create_holiday(
    payload: HolidayCreate,
    db: AsyncSession = Depends(get_db),
) -> HolidayResponse:
    try:
        return await service.create_holiday(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[HolidayResponse],
    dependencies=[Depends(check_permission("holidays", "read"))],
)
async def list_holidays(
    upcoming_from: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[HolidayResponse]:
    return await service.list_holidays(db, upcoming_from=upcoming_from)


@router.get(
    "/{holiday_id}",
    response_model=HolidayResponse,
    dependencies=[Depends(check_permission("holidays", "read"))],
)
async def get_holiday(
    holiday_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> HolidayResponse:
    try:
        return await service.get_holiday(db, holiday_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{holiday_id}",
    response_model=HolidayResponse,
    dependencies=[Depends(check_permission("holidays", "update"))],
)
async def update_holiday(
    holiday_id: UUID,
    payload: HolidayUpdate,
    db: AsyncSession = Depends(get_db),
) -> HolidayResponse:
    try:
        return await service.update_holiday(db, holiday_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{holiday_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("holidays", "delete"))],
)
async def delete_holiday(
    holiday_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_holiday(db, holiday_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
