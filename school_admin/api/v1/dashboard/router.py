from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.rbac import require_admin, require_roles
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import UserRole
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

from .schemas import AdminDashboard, ParentDashboard, StudentDashboard
from . import service

router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


@router.get("/admin", response_model=AdminDashboard)
async def admin_dashboard(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> AdminDashboard:
    return await service.admin_dashboard(db, current_user)


@router.get("/parent", response_model=ParentDashboard)
async def parent_dashboard(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.PARENT)),
) -> ParentDashboard:
    try:
        return await service.parent_dashboard(db, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/student", response_model=StudentDashboard)
async def student_dashboard(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.STUDENT)),
) -> StudentDashboard:
    try:
        return await service.student_dashboard(db, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
