from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.dependencies import get_current_user
from school_admin.auth.rbac import check_permission
from school_admin.auth.schemas import CurrentUser
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

from .schemas import EnrollmentCreate, EnrollmentResponse, EnrollmentUpdate
from . import service

router = APIRouter(prefix="/api/v1/enrollments", tags=["enrollments"])


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("enrollments", "create"))],
)
async def create_enrollment(
    payload: EnrollmentCreate,
    db: AsyncSession = Depends(get_db),
) -> EnrollmentResponse:
    try:
        return await service.create_enrollment(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[EnrollmentResponse],
    dependencies=[Depends(check_permission("enrollments", "read"))],
)
async def list_enrollments(
    student_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[EnrollmentResponse]:
    return await service.list_enrollments(db, current_user, student_id=student_id, class_id=class_id)


@router.get(
    "/{enrollment_id}",
    response_model=EnrollmentResponse,
    dependencies=[Depends(check_permission("enrollments", "read"))],
)
async def get_enrollment(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> EnrollmentResponse:
    try:
        return await service.get_enrollment(db, current_user, enrollment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{enrollment_id}",
    response_model=EnrollmentResponse,
    dependencies=[Depends(check_permission("enrollments", "update"))],
)
async def update_enrollment(
    enrollment_id: UUID,
    payload: EnrollmentUpdate,
    db: AsyncSession = Depends(get_db),
) -> EnrollmentResponse:
    try:
        return await service.update_enrollment(db, enrollment_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{enrollment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("enrollments", "delete"))],
)
async def delete_enrollment(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_enrollment(db, enrollment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
