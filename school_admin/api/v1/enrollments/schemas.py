from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from school_admin.core.enums import EnrollmentStatus


class EnrollmentCreate(BaseModel):
    student_id: UUID
    class_id: UUID
    subject_id: Optional[UUID] = None
    enrollment_date: Optional[date] = None
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE


class EnrollmentUpdate(BaseModel):
    class_id: Optional[UUID] = None
    subject_id: Optional[UUID] = None
    enrollment_date: Optional[date] = None
    status: Optional[EnrollmentStatus] = None


class EnrollmentResponse(BaseModel):
    id: UUID
    student_id: UUID
    class_id: UUID
    subject_id: Optional[UUID] = None
    enrollment_date: date
    status: str
    created_at: datetime

    class Config:
        from_attributes = True
