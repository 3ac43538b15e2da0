"""Admin-only user and role management."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth import services
from school_admin.auth.rbac import require_admin
from school_admin.auth.schemas import (
    RoleCreate,
    RoleResponse,
    RoleUpdate,
    UserResponse,
    UserRoleUpdate,
)
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

router = APIRouter(prefix="/api/v1", tags=["roles"], dependencies=[Depends(require_admin)])


@router.get("/users", response_model=List[UserResponse])
async def list_users(
    role: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[UserResponse]:
    return await services.list_users(db, role=role)


@router.put("/users/{user_id}/role", response_model=UserResponse)
async def edit_user_role(
    user_id: UUID,
    payload: UserRoleUpdate,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    try:
        return await services.set_user_role(db, user_id, payload.role.value)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(db: AsyncSession = Depends(get_db)) -> List[RoleResponse]:
    return await services.list_roles(db)


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    payload: RoleCreate,
    db: AsyncSession = Depends(get_db),
) -> RoleResponse:
    try:
        return await services.create_role(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: UUID,
    payload: RoleUpdate,
    db: AsyncSession = Depends(get_db),
) -> RoleResponse:
    try:
        return await services.update_role(db, role_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await services.delete_role(db, role_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
