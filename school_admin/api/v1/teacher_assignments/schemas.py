from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class TeacherAssignmentCreate(BaseModel):
    teacher_id: UUID
    class_id: UUID
    subject_id: UUID
    assignment_date: Optional[date] = None


class TeacherAssignmentUpdate(BaseModel):
    teacher_id: Optional[UUID] = None
    class_id: Optional[UUID] = None
    subject_id: Optional[UUID] = None
    assignment_date: Optional[date] = None


class TeacherAssignmentResponse(BaseModel):
    id: UUID
    teacher_id: UUID
    class_id: UUID
    subject_id: UUID
    assignment_date: date
    created_at: datetime

    class Config:
        from_attributes = True
