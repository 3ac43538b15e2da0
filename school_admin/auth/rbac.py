from fastapi import Depends, HTTPException, status

from school_admin.auth.dependencies import get_current_user
from school_admin.auth.policy import has_permission
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import UserRole


async def require_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Require the Admin role. Used for user/role administration and invoice write operations."""
    if current_user.role != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only Admin can perform this action",
        )
    return current_user


def require_roles(*roles: UserRole):
    """Dependency factory restricting an endpoint to the given roles (Admin always passes)."""
    allowed = {r.value for r in roles} | {UserRole.ADMIN.value}

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker


def check_permission(module: str, action: str):
    """
    Dependency factory to enforce a specific permission.

    Example:
        Depends(check_permission("invoices", "create"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> None:
        if not has_permission(current_user, module, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

    return _checker
