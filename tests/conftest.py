import os

# Settings are read at import time; point them at the test database first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace
from typing import AsyncGenerator, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from school_admin.auth.models import User
from school_admin.auth.security import create_access_token, hash_password
from school_admin.core import models  # noqa: F401
from school_admin.core.enums import UserRole
from school_admin.core.models import FeeType, Parent, SchoolClass, Student, StudentParent, Teacher
from school_admin.db.session import Base, get_db
from school_admin.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "StrongPass123"


@pytest.fixture()
async def engine():
    """Fresh in-memory database per test. StaticPool keeps every session on the same connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app; each request gets its own session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(
        subject={"sub": str(user.id), "user_id": str(user.id), "role": user.role}
    )
    return {"Authorization": f"Bearer {token}"}


async def make_user(db: AsyncSession, role: UserRole, email: str, full_name: str = "Test User") -> User:
    user = User(
        full_name=full_name,
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        role=role.value,
        status="ACTIVE",
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture()
async def admin_headers(db_session: AsyncSession) -> Dict[str, str]:
    admin = await make_user(db_session, UserRole.ADMIN, "admin@school.example.com", "School Admin")
    return auth_headers(admin)


@pytest.fixture()
async def school(db_session: AsyncSession) -> SimpleNamespace:
    """
    A class with one teacher, two students and two parents:
    parent_a has student_a, parent_b has student_b. Parents and student_a can log in.
    """
    grade = SchoolClass(name="Grade 5", section="A")
    tuition = FeeType(name="Tuition")
    bus = FeeType(name="Bus")
    db_session.add_all([grade, tuition, bus])
    await db_session.flush()

    parent_a_user = await make_user(db_session, UserRole.PARENT, "parent.a@school.example.com", "Alice Parent")
    parent_b_user = await make_user(db_session, UserRole.PARENT, "parent.b@school.example.com", "Bob Parent")
    student_a_user = await make_user(db_session, UserRole.STUDENT, "student.a@school.example.com", "Amy Student")
    teacher_user = await make_user(db_session, UserRole.TEACHER, "teacher@school.example.com", "Tom Teacher")

    student_a = Student(
        first_name="Amy", last_name="Student", email="student.a@school.example.com",
        class_id=grade.id, user_id=student_a_user.id,
    )
    student_b = Student(first_name="Ben", last_name="Student", email="student.b@school.example.com", class_id=grade.id)
    parent_a = Parent(first_name="Alice", last_name="Parent", email="parent.a@school.example.com", user_id=parent_a_user.id)
    parent_b = Parent(first_name="Bob", last_name="Parent", email="parent.b@school.example.com", user_id=parent_b_user.id)
    teacher = Teacher(first_name="Tom", last_name="Teacher", email="teacher@school.example.com", user_id=teacher_user.id)
    db_session.add_all([student_a, student_b, parent_a, parent_b, teacher])
    await db_session.flush()
    db_session.add_all([
        StudentParent(student_id=student_a.id, parent_id=parent_a.id),
        StudentParent(student_id=student_b.id, parent_id=parent_b.id),
    ])
    await db_session.commit()

    return SimpleNamespace(
        grade=grade,
        tuition=tuition,
        bus=bus,
        student_a=student_a,
        student_b=student_b,
        parent_a=parent_a,
        parent_b=parent_b,
        teacher=teacher,
        parent_a_headers=auth_headers(parent_a_user),
        parent_b_headers=auth_headers(parent_b_user),
        student_a_headers=auth_headers(student_a_user),
        teacher_headers=auth_headers(teacher_user),
    )


def invoice_payload(school: SimpleNamespace, amount: str = "500.00", due_in_days: int = 30, **overrides) -> dict:
    payload = {
        "student_id": str(school.student_a.id),
        "parent_id": str(school.parent_a.id),
        "due_date": (date.today() + timedelta(days=due_in_days)).isoformat(),
        "items": [
            {"fee_type_id": str(school.tuition.id), "description": "Tuition", "amount": amount},
        ],
    }
    payload.update(overrides)
    return payload


def money(value) -> Decimal:
    return Decimal(str(value))
