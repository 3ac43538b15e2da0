from datetime import date, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import invoice_payload
from school_admin.auth.models import User


# --- Students ---
@pytest.mark.asyncio
async def test_create_student_with_login_and_duplicate_email(client: AsyncClient, admin_headers, school) -> None:
    body = {
        "first_name": "Cara",
        "last_name": "New",
        "email": "Cara.New@School.example.com",
        "class_id": str(school.grade.id),
        "password": "CaraPass123",
    }
    res = await client.post("/api/v1/students", json=body, headers=admin_headers)
    assert res.status_code == 201, res.text
    data = res.json()
    assert data["email"] == "cara.new@school.example.com"
    assert data["full_name"] == "Cara New"
    assert data["user_id"] is not None

    res = await client.post("/api/v1/students", json={**body, "password": None}, headers=admin_headers)
    assert res.status_code == 422
    assert res.json()["detail"] == "A student with this email already exists."

    login = await client.post("/api/v1/auth/login", json={"email": "cara.new@school.example.com", "password": "CaraPass123"})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_delete_student_removes_login_user(
    client: AsyncClient, admin_headers, school, db_session: AsyncSession
) -> None:
    user_id = school.student_a.user_id
    res = await client.delete(f"/api/v1/students/{school.student_a.id}", headers=admin_headers)
    assert res.status_code == 204, res.text

    res = await client.get(f"/api/v1/students/{school.student_a.id}", headers=admin_headers)
    assert res.status_code == 404
    user = (await db_session.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    assert user is None


@pytest.mark.asyncio
async def test_delete_student_with_invoice_is_refused(client: AsyncClient, admin_headers, school) -> None:
    res = await client.post("/api/v1/invoices", json=invoice_payload(school), headers=admin_headers)
    assert res.status_code == 201
    res = await client.delete(f"/api/v1/students/{school.student_a.id}", headers=admin_headers)
    assert res.status_code == 409
    assert "invoices" in res.json()["detail"]


@pytest.mark.asyncio
async def test_student_reads_only_own_record(client: AsyncClient, school) -> None:
    res = await client.get(f"/api/v1/students/{school.student_a.id}", headers=school.student_a_headers)
    assert res.status_code == 200
    res = await client.get(f"/api/v1/students/{school.student_b.id}", headers=school.student_a_headers)
    assert res.status_code == 403

    res = await client.get("/api/v1/students", headers=school.student_a_headers)
    assert [s["id"] for s in res.json()] == [str(school.student_a.id)]


@pytest.mark.asyncio
async def test_parent_lists_only_linked_children(client: AsyncClient, school) -> None:
    res = await client.get("/api/v1/students", headers=school.parent_b_headers)
    assert res.status_code == 200
    assert [s["id"] for s in res.json()] == [str(school.student_b.id)]


@pytest.mark.asyncio
async def test_student_cannot_create_student(client: AsyncClient, school) -> None:
    body = {"first_name": "X", "last_name": "Y", "email": "x.y@school.example.com"}
    res = await client.post("/api/v1/students", json=body, headers=school.student_a_headers)
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_unauthenticated_request_is_rejected(client: AsyncClient) -> None:
    res = await client.get("/api/v1/students")
    assert res.status_code == 401


# --- Fees ---
@pytest.mark.asyncio
async def test_duplicate_class_fee_is_rejected(client: AsyncClient, admin_headers, school) -> None:
    body = {"class_id": str(school.grade.id), "fee_type_id": str(school.tuition.id), "amount": "400.00"}
    res = await client.post("/api/v1/fees/class", json=body, headers=admin_headers)
    assert res.status_code == 201, res.text
    res = await client.post("/api/v1/fees/class", json={**body, "amount": "450.00"}, headers=admin_headers)
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_suggested_invoice_items_prefer_student_fee(client: AsyncClient, admin_headers, school) -> None:
    await client.post(
        "/api/v1/fees/class",
        json={"class_id": str(school.grade.id), "fee_type_id": str(school.tuition.id), "amount": "400.00"},
        headers=admin_headers,
    )
    await client.post(
        "/api/v1/fees/class",
        json={"class_id": str(school.grade.id), "fee_type_id": str(school.bus.id), "amount": "50.00"},
        headers=admin_headers,
    )
    res = await client.post(
        "/api/v1/fees/student",
        json={"student_id": str(school.student_a.id), "fee_type_id": str(school.tuition.id), "amount": "300.00"},
        headers=admin_headers,
    )
    assert res.status_code == 201, res.text

    res = await client.get(f"/api/v1/fees/students/{school.student_a.id}/invoice-items", headers=admin_headers)
    assert res.status_code == 200
    items = {i["description"]: i for i in res.json()}
    assert set(items) == {"Bus", "Tuition"}
    assert items["Tuition"]["amount"] in ("300.00", "300")
    assert items["Bus"]["amount"] in ("50.00", "50")


@pytest.mark.asyncio
async def test_fee_type_used_by_invoice_cannot_be_deleted(client: AsyncClient, admin_headers, school) -> None:
    res = await client.post("/api/v1/invoices", json=invoice_payload(school), headers=admin_headers)
    assert res.status_code == 201

    res = await client.delete(f"/api/v1/fees/types/{school.tuition.id}", headers=admin_headers)
    assert res.status_code == 409

    res = await client.get(f"/api/v1/fees/types/{school.tuition.id}", headers=admin_headers)
    assert res.status_code == 200

    res = await client.delete(f"/api/v1/fees/types/{school.bus.id}", headers=admin_headers)
    assert res.status_code == 204


# --- Classes and enrollments ---
@pytest.mark.asyncio
async def test_duplicate_enrollment_is_rejected(client: AsyncClient, admin_headers, school) -> None:
    body = {"student_id": str(school.student_a.id), "class_id": str(school.grade.id)}
    res = await client.post("/api/v1/enrollments", json=body, headers=admin_headers)
    assert res.status_code == 201, res.text
    res = await client.post("/api/v1/enrollments", json=body, headers=admin_headers)
    assert res.status_code == 422
    assert res.json()["detail"] == "Student is already enrolled in this class."


@pytest.mark.asyncio
async def test_class_with_students_cannot_be_deleted(client: AsyncClient, admin_headers, school) -> None:
    res = await client.delete(f"/api/v1/classes/{school.grade.id}", headers=admin_headers)
    assert res.status_code == 409

    res = await client.post("/api/v1/classes", json={"name": "Grade 6"}, headers=admin_headers)
    assert res.status_code == 201, res.text
    res = await client.delete(f"/api/v1/classes/{res.json()['id']}", headers=admin_headers)
    assert res.status_code == 204


# --- Roles ---
@pytest.mark.asyncio
async def test_role_with_users_cannot_be_deleted(client: AsyncClient, admin_headers, school) -> None:
    res = await client.post("/api/v1/roles", json={"name": "Teacher"}, headers=admin_headers)
    assert res.status_code == 201, res.text
    role = res.json()
    assert role["user_count"] == 1

    res = await client.delete(f"/api/v1/roles/{role['id']}", headers=admin_headers)
    assert res.status_code == 409

    res = await client.post("/api/v1/roles", json={"name": "Librarian"}, headers=admin_headers)
    res = await client.delete(f"/api/v1/roles/{res.json()['id']}", headers=admin_headers)
    assert res.status_code == 204


@pytest.mark.asyncio
async def test_role_administration_requires_admin(client: AsyncClient, school) -> None:
    res = await client.get("/api/v1/roles", headers=school.teacher_headers)
    assert res.status_code == 403


# --- Notices ---
@pytest.mark.asyncio
async def test_notice_visibility(client: AsyncClient, admin_headers, school) -> None:
    today = date.today()
    live = await client.post(
        "/api/v1/notices", json={"title": "Sports day", "content": "Friday"}, headers=admin_headers
    )
    assert live.status_code == 201, live.text
    expired = await client.post(
        "/api/v1/notices",
        json={
            "title": "Old",
            "content": "Gone",
            "publish_date": (today - timedelta(days=10)).isoformat(),
            "expiry_date": (today - timedelta(days=1)).isoformat(),
        },
        headers=admin_headers,
    )
    hidden = await client.post(
        "/api/v1/notices", json={"title": "Draft", "content": "Later", "is_active": False}, headers=admin_headers
    )

    res = await client.get("/api/v1/notices", headers=school.student_a_headers)
    assert [n["id"] for n in res.json()] == [live.json()["id"]]

    res = await client.get(f"/api/v1/notices/{hidden.json()['id']}", headers=school.parent_a_headers)
    assert res.status_code == 404

    res = await client.get("/api/v1/notices", headers=admin_headers)
    assert len(res.json()) == 3
    assert expired.json()["id"] in {n["id"] for n in res.json()}


@pytest.mark.asyncio
async def test_notice_expiry_cannot_precede_publish_date(client: AsyncClient, admin_headers) -> None:
    today = date.today()
    res = await client.post(
        "/api/v1/notices",
        json={
            "title": "Backwards",
            "content": "x",
            "publish_date": today.isoformat(),
            "expiry_date": (today - timedelta(days=1)).isoformat(),
        },
        headers=admin_headers,
    )
    assert res.status_code == 422
