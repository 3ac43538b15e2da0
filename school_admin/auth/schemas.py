from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from school_admin.core.enums import UserRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserInfo(BaseModel):
    id: UUID
    name: str
    email: EmailStr
    role: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserInfo
    issued_at: datetime


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated caller for permission and ownership checks.
    Profile ids are resolved once per request from the user's Student/Teacher/Parent record.
    """

    id: UUID
    role: str
    permissions: Dict[str, Dict[str, bool]] = Field(default_factory=dict)
    student_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None
    parent_id: Optional[UUID] = None
    child_ids: List[UUID] = Field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


# --- Users / Roles administration ---
class UserResponse(BaseModel):
    id: UUID
    full_name: str
    email: EmailStr
    role: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class UserRoleUpdate(BaseModel):
    role: UserRole


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    permissions: Dict[str, Dict[str, bool]] = Field(default_factory=dict)


class RoleUpdate(BaseModel):
    permissions: Dict[str, Dict[str, bool]]


class RoleResponse(BaseModel):
    id: UUID
    name: str
    permissions: Dict[str, Dict[str, bool]]
    user_count: int = 0
    created_at: datetime
