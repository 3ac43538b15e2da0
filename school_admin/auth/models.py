import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from school_admin.db.session import Base


class User(Base):
    """Login identity. Profile records (Student, Teacher, Parent) point at it through user_id."""

    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name = Column(String(255), nullable=False)
    email = Column(String(256), nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    # Admin, Teacher, Student, Parent
    role = Column(String(50), nullable=False)
    # FK to roles when a Role row exists for `role`; used to block deleting roles in use
    role_id = Column(UUID(as_uuid=True), ForeignKey("roles.id"), nullable=True)
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    role_obj = relationship("Role", foreign_keys=[role_id])


class Role(Base):
    """Named role with JSON permissions overriding the built-in matrix."""

    __tablename__ = "roles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    # Example shape:
    # {
    #   "invoices": {"create": true, "read": true, "update": false, "delete": false},
    #   "students": {"read": true}
    # }
    permissions = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
