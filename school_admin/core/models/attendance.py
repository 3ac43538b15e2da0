import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from school_admin.core.enums import AttendanceStatus
from school_admin.db.session import Base


class Attendance(Base):
    """Subject-wise attendance of one student on one day."""

    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "class_id", "subject_id", "attendance_date",
            name="uq_attendance_student_class_subject_date",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    attendance_date = Column(Date, nullable=False, default=date.today)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="RESTRICT"), nullable=False)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id", ondelete="RESTRICT"), nullable=False)
    status = Column(String(50), nullable=False, default=AttendanceStatus.PRESENT.value)
    is_present = Column(Boolean, nullable=False, default=True)
    # Teacher who marked it; null for admin entries
    marked_by = Column(UUID(as_uuid=True), ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student")
    school_class = relationship("SchoolClass")
    subject = relationship("Subject")
