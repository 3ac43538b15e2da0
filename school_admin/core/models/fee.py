"""Fee catalog (fee types) and fee assignment to classes and students. Read-only inputs to invoicing."""

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from school_admin.db.session import Base


class FeeType(Base):
    """Fee catalog entry (Tuition, Bus, Exam, Hostel)."""

    __tablename__ = "fee_types"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(String(500), nullable=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class ClassFee(Base):
    """Standard amount of a fee type for every student of a class."""

    __tablename__ = "class_fees"
    __table_args__ = (
        UniqueConstraint("class_id", "fee_type_id", name="uq_class_fee_class_fee_type"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    fee_type_id = Column(UUID(as_uuid=True), ForeignKey("fee_types.id", ondelete="RESTRICT"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    effective_date = Column(Date, nullable=False, default=date.today)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass")
    fee_type = relationship("FeeType")


class StudentFee(Base):
    """Student-specific fee, overriding the class fee of the same type."""

    __tablename__ = "student_fees"
    __table_args__ = (
        UniqueConstraint("student_id", "fee_type_id", name="uq_student_fee_student_fee_type"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="RESTRICT"), nullable=False)
    fee_type_id = Column(UUID(as_uuid=True), ForeignKey("fee_types.id", ondelete="RESTRICT"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    due_date = Column(Date, nullable=True)
    status = Column(String(50), nullable=False, default="Outstanding")
    notes = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student")
    fee_type = relationship("FeeType")
