from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from school_admin.core.enums import AttendanceStatus


class AttendanceCreate(BaseModel):
    student_id: UUID
    class_id: UUID
    subject_id: UUID
    attendance_date: date
    status: AttendanceStatus = AttendanceStatus.PRESENT


class AttendanceUpdate(BaseModel):
    status: AttendanceStatus


class AttendanceMark(BaseModel):
    """One student's status inside a bulk mark."""

    student_id: UUID
    status: AttendanceStatus


class ClassAttendanceBulkMark(BaseModel):
    """Mark a whole class for one subject on one day."""

    class_id: UUID
    subject_id: UUID
    attendance_date: date
    records: List[AttendanceMark] = Field(..., min_length=1)


class AttendanceResponse(BaseModel):
    id: UUID
    attendance_date: date
    student_id: UUID
    class_id: UUID
    subject_id: UUID
    status: str
    is_present: bool
    marked_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AttendanceSummary(BaseModel):
    total: int = 0
    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0
    attendance_rate: float = 0.0
