from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.dependencies import get_current_user
from school_admin.auth.rbac import check_permission
from school_admin.auth.schemas import CurrentUser
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

from .schemas import NoticeCreate, NoticeResponse, NoticeUpdate
from . import service

router = APIRouter(prefix="/api/v1/notices", tags=["notices"])


@router.post(
    "",
    response_model=NoticeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("notices", "create"))],
)
async def create_notice(
    payload: NoticeCreate,
    db: AsyncSession = Depends(get_db),
) -> NoticeResponse:
    try:
        return await service.create_notice(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[NoticeResponse],
    dependencies=[Depends(check_permission("notices", "read"))],
)
async def list_notices(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[NoticeResponse]:
    return await service.list_notices(db, current_user)


@router.get(
    "/{notice_id}",
    response_model=NoticeResponse,
    dependencies=[Depends(check_permission("notices", "read"))],
)
async def get_notice(
    notice_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> NoticeResponse:
    try:
        return await service.get_notice(db, current_user, notice_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{notice_id}",
    response_model=NoticeResponse,
    dependencies=[Depends(check_permission("notices", "update"))],
)
async def update_notice(
    notice_id: UUID,
    payload: NoticeUpdate,
    db: AsyncSession = Depends(get_db),
) -> NoticeResponse:
    try:
        return await service.update_notice(db, notice_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{notice_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("notices", "delete"))],
)
async def delete_notice(
    notice_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_notice(db, notice_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
