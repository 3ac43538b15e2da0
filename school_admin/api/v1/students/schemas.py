"""Student schemas."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class StudentCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone_number: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    enrollment_date: Optional[date] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, max_length=10)
    class_id: Optional[UUID] = None
    # When given, a Student login account is created with this password
    password: Optional[str] = Field(None, min_length=8)


class StudentUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    enrollment_date: Optional[date] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, max_length=10)
    class_id: Optional[UUID] = None


class StudentResponse(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone_number: Optional[str] = None
    address: Optional[str] = None
    enrollment_date: date
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    class_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    parent_ids: List[UUID] = Field(default_factory=list)
    created_at: datetime
