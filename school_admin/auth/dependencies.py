from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.models import Role, User
from school_admin.auth.policy import permissions_for_role
from school_admin.auth.schemas import CurrentUser
from school_admin.auth.services import get_user_profile_ids
from school_admin.core.config import settings
from school_admin.core.models import StudentParent
from school_admin.db.session import get_db


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login-oauth")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve the authenticated user, their permissions and linked profile ids from the access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise credentials_exception

    user_id_str = payload.get("user_id") or payload.get("sub")
    if not user_id_str:
        raise credentials_exception
    try:
        user_id = UUID(user_id_str)
    except ValueError:
        raise credentials_exception

    user = await db.get(User, user_id)
    if not user or user.status != "ACTIVE":
        raise credentials_exception

    role = (
        await db.execute(select(Role).where(Role.name == user.role))
    ).scalar_one_or_none()
    permissions = permissions_for_role(user.role, role.permissions if role else None)

    profile = await get_user_profile_ids(db, user.id)
    parent_id = profile["parent_id"]
    child_ids = []
    if parent_id is not None:
        child_ids = list(
            (
                await db.execute(
                    select(StudentParent.student_id).where(StudentParent.parent_id == parent_id)
                )
            ).scalars().all()
        )

    return CurrentUser(
        id=user.id,
        role=user.role,
        permissions=permissions,
        student_id=profile["student_id"],
        teacher_id=profile["teacher_id"],
        parent_id=parent_id,
        child_ids=child_ids,
    )
