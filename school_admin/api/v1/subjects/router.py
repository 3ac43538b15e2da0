from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.rbac import check_permission
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

from .schemas import SubjectCreate, SubjectResponse, SubjectUpdate
from . import service

router = APIRouter(prefix="/api/v1/subjects", tags=["subjects"])


@router.post(
    "",
    response_model=SubjectResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("subjects", "create"))],
)
async def create_subject(
    payload: SubjectCreate,
    db: AsyncSession = Depends(get_db),
) -> SubjectResponse:
    try:
        return await service.create_subject(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[SubjectResponse],
    dependencies=[Depends(check_permission("subjects", "read"))],
)
async def list_subjects(db: AsyncSession = Depends(get_db)) -> List[SubjectResponse]:
    return await service.list_subjects(db)


@router.get(
    "/{subject_id}",
    response_model=SubjectResponse,
    dependencies=[Depends(check_permission("subjects", "read"))],
)
async def get_subject(
    subject_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> SubjectResponse:
    try:
        return await service.get_subject(db, subject_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{subject_id}",
    response_model=SubjectResponse,
    dependencies=[Depends(check_permission("subjects", "update"))],
)
async def update_subject(
    subject_id: UUID,
    payload: SubjectUpdate,
    db: AsyncSession = Depends(get_db),
) -> SubjectResponse:
    try:
        return await service.update_subject(db, subject_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{subject_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("subjects", "delete"))],
)
async def delete_subject(
    subject_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_subject(db, subject_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
