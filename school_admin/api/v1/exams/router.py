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

from .schemas import ExamCreate, ExamResponse, ExamUpdate, MarkResponse, MarksBulkEntry
from . import service

router = APIRouter(prefix="/api/v1/exams", tags=["exams"])
marks_router = APIRouter(prefix="/api/v1/marks", tags=["marks"])


@router.post(
    "",
    response_model=ExamResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("exams", "create"))],
)
async def create_exam(
    payload: ExamCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ExamResponse:
    try:
        return await service.create_exam(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[ExamResponse],
    dependencies=[Depends(check_permission("exams", "read"))],
)
async def list_exams(
    class_id: Optional[UUID] = Query(None),
    subject_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ExamResponse]:
    return await service.list_exams(db, current_user, class_id=class_id, subject_id=subject_id)


@router.get(
    "/{exam_id}",
    response_model=ExamResponse,
    dependencies=[Depends(check_permission("exams", "read"))],
)
async def get_exam(
    exam_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ExamResponse:
    try:
        return await service.get_exam(db, current_user, exam_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{exam_id}",
    response_model=ExamResponse,
    dependencies=[Depends(check_permission("exams", "update"))],
)
async def update_exam(
    exam_id: UUID,
    payload: ExamUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ExamResponse:
    try:
        return await service.update_exam(db, current_user, exam_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{exam_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("exams", "delete"))],
)
async def delete_exam(
    exam_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        await service.delete_exam(db, current_user, exam_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{exam_id}/marks",
    response_model=List[MarkResponse],
    dependencies=[Depends(check_permission("marks", "create"))],
)
async def enter_marks(
    exam_id: UUID,
    payload: MarksBulkEntry,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[MarkResponse]:
    try:
        return await service.enter_marks(db, current_user, exam_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{exam_id}/marks",
    response_model=List[MarkResponse],
    dependencies=[Depends(check_permission("marks", "read"))],
)
async def list_marks_for_exam(
    exam_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[MarkResponse]:
    try:
        return await service.list_marks_for_exam(db, current_user, exam_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@marks_router.get("/mine", response_model=List[MarkResponse])
async def list_my_marks(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.STUDENT)),
) -> List[MarkResponse]:
    try:
        return await service.list_my_marks(db, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@marks_router.get("/children/{student_id}", response_model=List[MarkResponse])
async def list_child_marks(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.PARENT)),
) -> List[MarkResponse]:
    try:
        return await service.list_child_marks(db, current_user, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
