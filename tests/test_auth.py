from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import TEST_PASSWORD, make_user
from school_admin.core.enums import UserRole


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await make_user(db_session, UserRole.ADMIN, "john.admin@example.com", "John Admin")

    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "John.Admin@example.com", "password": TEST_PASSWORD},
    )
    assert response.status_code == 200
    data = response.json()

    assert data["token_type"] == "bearer"
    assert isinstance(data["access_token"], str) and data["access_token"]
    assert UUID(data["user"]["id"]) == user.id
    assert data["user"]["role"] == "Admin"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, db_session: AsyncSession) -> None:
    await make_user(db_session, UserRole.TEACHER, "t@example.com")

    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "t@example.com", "password": "WrongPass999"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_login_inactive_user(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await make_user(db_session, UserRole.TEACHER, "gone@example.com")
    user.status = "INACTIVE"
    await db_session.commit()

    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "gone@example.com", "password": TEST_PASSWORD},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_oauth_form_login(client: AsyncClient, db_session: AsyncSession) -> None:
    await make_user(db_session, UserRole.ADMIN, "form@example.com")
    response = await client.post(
        "/api/v1/auth/login-oauth",
        data={"username": "form@example.com", "password": TEST_PASSWORD},
    )
    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"


@pytest.mark.asyncio
async def test_me_resolves_parent_profile(client: AsyncClient, school) -> None:
    response = await client.get("/api/v1/auth/me", headers=school.parent_a_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["role"] == "Parent"
    assert data["parent_id"] == str(school.parent_a.id)
    assert data["child_ids"] == [str(school.student_a.id)]
    assert data["permissions"]["payments"]["create"] is True


@pytest.mark.asyncio
async def test_me_rejects_bad_token(client: AsyncClient) -> None:
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
