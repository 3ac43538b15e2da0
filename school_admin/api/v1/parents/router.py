from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.dependencies import get_current_user
from school_admin.auth.rbac import check_permission
from school_admin.auth.schemas import CurrentUser
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

from .schemas import ParentCreate, ParentResponse, ParentUpdate
from . import service

router = APIRouter(prefix="/api/v1/parents", tags=["parents"])


@router.post(
    "",
    response_model=ParentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("parents", "create"))],
)
async def create_parent(
    payload: ParentCreate,
    db: AsyncSession = Depends(get_db),
) -> ParentResponse:
    try:
        return await service.create_parent(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[ParentResponse],
    dependencies=[Depends(check_permission("parents", "read"))],
)
async def list_parents(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ParentResponse]:
    return await service.list_parents(db, current_user)


@router.get(
    "/by-student/{student_id}",
    response_model=List[ParentResponse],
    dependencies=[Depends(check_permission("students", "read"))],
)
async def list_parents_for_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ParentResponse]:
    try:
        return await service.list_parents_for_student(db, current_user, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{parent_id}",
    response_model=ParentResponse,
    dependencies=[Depends(check_permission("parents", "read"))],
)
async def get_parent(
    parent_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ParentResponse:
    try:
        return await service.get_parent(db, current_user, parent_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{parent_id}",
    response_model=ParentResponse,
    dependencies=[Depends(check_permission("parents", "update"))],
)
async def update_parent(
    parent_id: UUID,
    payload: ParentUpdate,
    db: AsyncSession = Depends(get_db),
) -> ParentResponse:
    try:
        return await service.update_parent(db, parent_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{parent_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("parents", "delete"))],
)
async def delete_parent(
    parent_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_parent(db, parent_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{parent_id}/students/{student_id}",
    response_model=ParentResponse,
    dependencies=[Depends(check_permission("parents", "update"))],
)
async def link_student(
    parent_id: UUID,
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ParentResponse:
    try:
        return await service.link_student(db, parent_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{parent_id}/students/{student_id}",
    response_model=ParentResponse,
    dependencies=[Depends(check_permission("parents", "update"))],
)
async def unlink_student(
    parent_id: UUID,
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ParentResponse:
    try:
        return await service.unlink_student(db, parent_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
