import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.models import Role, User
from school_admin.auth.schemas import (
    LoginRequest,
    LoginResponse,
    RoleCreate,
    RoleResponse,
    RoleUpdate,
    UserInfo,
    UserResponse,
)
from school_admin.auth.security import create_access_token, hash_password, verify_password
from school_admin.core.exceptions import (
    NotFoundError,
    ReferentialIntegrityError,
    ServiceError,
    ValidationError,
)
from school_admin.core.models import Parent, Student, Teacher

logger = logging.getLogger(__name__)


async def login_user(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    user = (
        await db.execute(select(User).where(User.email == payload.email.strip().lower()))
    ).scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        raise ServiceError("Invalid email or password", status.HTTP_401_UNAUTHORIZED)
    if user.status != "ACTIVE":
        raise ServiceError("User account is inactive", status.HTTP_403_FORBIDDEN)

    access_token = create_access_token(
        subject={"sub": str(user.id), "user_id": str(user.id), "role": user.role}
    )
    logger.info("User %s logged in as %s", user.id, user.role)
    return LoginResponse(
        access_token=access_token,
        user=UserInfo(id=user.id, name=user.full_name, email=user.email, role=user.role),
        issued_at=datetime.now(timezone.utc),
    )


# --- Login identities for profile records ---
async def email_in_use(db: AsyncSession, email: str) -> bool:
    existing = (
        await db.execute(select(User.id).where(User.email == email))
    ).scalar_one_or_none()
    return existing is not None


async def create_login_user(
    db: AsyncSession,
    full_name: str,
    email: str,
    password: str,
    role: str,
) -> User:
    """Add (flush, not commit) a login user for a new Student/Teacher/Parent record."""
    if await email_in_use(db, email):
        raise ValidationError("A login account with this email already exists", field="email")
    role_id = (
        await db.execute(select(Role.id).where(Role.name == role))
    ).scalar_one_or_none()
    user = User(
        full_name=full_name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        role_id=role_id,
        status="ACTIVE",
    )
    db.add(user)
    await db.flush()
    return user


async def delete_login_user(db: AsyncSession, user_id: Optional[UUID]) -> None:
    if user_id is None:
        return
    user = await db.get(User, user_id)
    if user is not None:
        await db.delete(user)


# --- Users ---
async def list_users(db: AsyncSession, role: Optional[str] = None) -> List[UserResponse]:
    stmt = select(User)
    if role:
        stmt = stmt.where(User.role == role)
    stmt = stmt.order_by(User.full_name)
    result = await db.execute(stmt)
    return [UserResponse.model_validate(u) for u in result.scalars().all()]


async def set_user_role(db: AsyncSession, user_id: UUID, role: str) -> UserResponse:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    role_id = (
        await db.execute(select(Role.id).where(Role.name == role))
    ).scalar_one_or_none()
    old_role = user.role
    user.role = role
    user.role_id = role_id
    await db.commit()
    await db.refresh(user)
    logger.info("User %s role changed from %s to %s", user.id, old_role, role)
    return UserResponse.model_validate(user)


async def get_user_profile_ids(db: AsyncSession, user_id: UUID) -> dict:
    """Profile records linked to a login user."""
    return {
        "student_id": (await db.execute(select(Student.id).where(Student.user_id == user_id))).scalar_one_or_none(),
        "teacher_id": (await db.execute(select(Teacher.id).where(Teacher.user_id == user_id))).scalar_one_or_none(),
        "parent_id": (await db.execute(select(Parent.id).where(Parent.user_id == user_id))).scalar_one_or_none(),
    }


# --- Roles ---
async def _role_user_count(db: AsyncSession, role: Role) -> int:
    count = (
        await db.execute(
            select(func.count(User.id)).where((User.role_id == role.id) | (User.role == role.name))
        )
    ).scalar()
    return int(count or 0)


async def _role_to_response(db: AsyncSession, role: Role) -> RoleResponse:
    return RoleResponse(
        id=role.id,
        name=role.name,
        permissions=role.permissions or {},
        user_count=await _role_user_count(db, role),
        created_at=role.created_at,
    )


async def list_roles(db: AsyncSession) -> List[RoleResponse]:
    result = await db.execute(select(Role).order_by(Role.name))
    return [await _role_to_response(db, r) for r in result.scalars().all()]


async def create_role(db: AsyncSession, payload: RoleCreate) -> RoleResponse:
    name = payload.name.strip()
    if not name:
        raise ValidationError("Role name cannot be empty", field="name")
    existing = (
        await db.execute(select(Role.id).where(Role.name == name))
    ).scalar_one_or_none()
    if existing:
        raise ValidationError("Role with this name already exists", field="name")
    try:
        role = Role(name=name, permissions=payload.permissions)
        db.add(role)
        await db.flush()
        # Users already holding this role name now point at the row
        await db.execute(update(User).where(User.role == name).values(role_id=role.id))
        await db.commit()
        await db.refresh(role)
    except IntegrityError:
        await db.rollback()
        raise ValidationError("Role with this name already exists", field="name")
    return await _role_to_response(db, role)


async def update_role(db: AsyncSession, role_id: UUID, payload: RoleUpdate) -> RoleResponse:
    role = await db.get(Role, role_id)
    if not role:
        raise NotFoundError("Role not found")
    role.permissions = payload.permissions
    await db.commit()
    await db.refresh(role)
    return await _role_to_response(db, role)


async def delete_role(db: AsyncSession, role_id: UUID) -> None:
    role = await db.get(Role, role_id)
    if not role:
        raise NotFoundError("Role not found")
    if await _role_user_count(db, role):
        logger.warning("Refused to delete role %s: users still assigned", role.name)
        raise ReferentialIntegrityError(
            f"Cannot delete role '{role.name}' because there are users assigned to it. "
            "Please remove users from this role first."
        )
    await db.delete(role)
    await db.commit()
