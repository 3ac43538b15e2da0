from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ExamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    exam_date: date
    class_id: UUID
    subject_id: UUID
    # Admins pick the teacher; teachers create exams for themselves
    teacher_id: Optional[UUID] = None
    max_marks: Optional[int] = Field(None, gt=0)


class ExamUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    exam_date: Optional[date] = None
    max_marks: Optional[int] = Field(None, gt=0)


class ExamResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    exam_date: date
    class_id: UUID
    subject_id: UUID
    teacher_id: UUID
    max_marks: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MarkEntry(BaseModel):
    student_id: UUID
    marks_obtained: int = Field(..., ge=0)


class MarksBulkEntry(BaseModel):
    records: List[MarkEntry] = Field(..., min_length=1)


class MarkResponse(BaseModel):
    id: UUID
    exam_id: UUID
    student_id: UUID
    subject_id: Optional[UUID] = None
    class_id: Optional[UUID] = None
    marks_obtained: int
    date_recorded: date

    class Config:
        from_attributes = True
