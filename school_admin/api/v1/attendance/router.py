from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.dependencies import get_current_user
from school_admin.auth.rbac import check_permission, require_roles
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import UserRole
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

from .schemas import AttendanceCreate, AttendanceResponse, AttendanceUpdate, ClassAttendanceBulkMark
from . import service

router = APIRouter(prefix="/api/v1/attendance", tags=["attendance"])


@router.post(
    "",
    response_model=AttendanceResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("attendance", "create"))],
)
async def create_attendance(
    payload: AttendanceCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AttendanceResponse:
    try:
        return await service.create_attendance(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/class",
    response_model=List[AttendanceResponse],
    dependencies=[Depends(check_permission("attendance", "create"))],
)
async def mark_class_attendance(
    payload: ClassAttendanceBulkMark,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[AttendanceResponse]:
    try:
        return await service.mark_class_attendance(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[AttendanceResponse],
    dependencies=[Depends(check_permission("attendance", "read"))],
)
async def list_attendance(
    student_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    subject_id: Optional[UUID] = Query(None),
    attendance_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[AttendanceResponse]:
    return await service.list_attendance(
        db,
        current_user,
        student_id=student_id,
        class_id=class_id,
        subject_id=subject_id,
        attendance_date=attendance_date,
    )


@router.get("/mine", response_model=List[AttendanceResponse])
async def list_my_attendance(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.STUDENT)),
) -> List[AttendanceResponse]:
    try:
        return await service.list_my_attendance(db, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{attendance_id}",
    response_model=AttendanceResponse,
    dependencies=[Depends(check_permission("attendance", "read"))],
)
async def get_attendance(
    attendance_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AttendanceResponse:
    try:
        return await service.get_attendance(db, current_user, attendance_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{attendance_id}",
    response_model=AttendanceResponse,
    dependencies=[Depends(check_permission("attendance", "update"))],
)
async def update_attendance(
    attendance_id: UUID,
    payload: AttendanceUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AttendanceResponse:
    try:
        return await service.update_attendance(db, current_user, attendance_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{attendance_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("attendance", "delete"))],
)
async def delete_attendance(
    attendance_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_attendance(db, attendance_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
