from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.rbac import check_permission, require_roles
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import UserRole
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

from .schemas import TeacherAssignmentCreate, TeacherAssignmentResponse, TeacherAssignmentUpdate
from . import service

router = APIRouter(prefix="/api/v1/teacher-assignments", tags=["teacher-assignments"])


@router.post(
    "",
    response_model=TeacherAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("teacher_assignments", "create"))],
)
async def create_assignment(
    payload: TeacherAssignmentCreate,
    db: AsyncSession = Depends(get_db),
) -> TeacherAssignmentResponse:
    try:
        return await service.create_assignment(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[TeacherAssignmentResponse],
    dependencies=[Depends(check_permission("teacher_assignments", "read"))],
)
async def list_assignments(
    teacher_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[TeacherAssignmentResponse]:
    return await service.list_assignments(db, teacher_id=teacher_id, class_id=class_id)


@router.get("/mine", response_model=List[TeacherAssignmentResponse])
async def list_my_assignments(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.TEACHER)),
) -> List[TeacherAssignmentResponse]:
    try:
        return await service.list_my_assignments(db, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{assignment_id}",
    response_model=TeacherAssignmentResponse,
    dependencies=[Depends(check_permission("teacher_assignments", "read"))],
)
async def get_assignment(
    assignment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> TeacherAssignmentResponse:
    try:
        return await service.get_assignment(db, assignment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{assignment_id}",
    response_model=TeacherAssignmentResponse,
    dependencies=[Depends(check_permission("teacher_assignments", "update"))],
)
async def update_assignment(
    assignment_id: UUID,
    payload: TeacherAssignmentUpdate,
    db: AsyncSession = Depends(get_db),
) -> TeacherAssignmentResponse:
    try:
        return await service.update_assignment(db, assignment_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{assignment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("teacher_assignments", "delete"))],
)
async def delete_assignment(
    assignment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_assignment(db, assignment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
