from datetime import date, timedelta

import pytest
from httpx import AsyncClient

from conftest import invoice_payload, money


async def _subject(client: AsyncClient, admin_headers, name: str = "Mathematics", code: str = "math") -> dict:
    res = await client.post("/api/v1/subjects", json={"name": name, "code": code}, headers=admin_headers)
    assert res.status_code == 201, res.text
    return res.json()


async def _assign(client: AsyncClient, admin_headers, school, subject: dict) -> dict:
    res = await client.post(
        "/api/v1/teacher-assignments",
        json={"teacher_id": str(school.teacher.id), "class_id": str(school.grade.id), "subject_id": subject["id"]},
        headers=admin_headers,
    )
    assert res.status_code == 201, res.text
    return res.json()


def _bulk_attendance(school, subject: dict, day: date, status_a: str = "Present", status_b: str = "Absent") -> dict:
    return {
        "class_id": str(school.grade.id),
        "subject_id": subject["id"],
        "attendance_date": day.isoformat(),
        "records": [
            {"student_id": str(school.student_a.id), "status": status_a},
            {"student_id": str(school.student_b.id), "status": status_b},
        ],
    }


@pytest.mark.asyncio
async def test_subject_code_is_normalised_and_unique(client: AsyncClient, admin_headers) -> None:
    subject = await _subject(client, admin_headers)
    assert subject["code"] == "MATH"
    res = await client.post("/api/v1/subjects", json={"name": "Maths II", "code": "Math"}, headers=admin_headers)
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_teacher_sees_own_assignments(client: AsyncClient, admin_headers, school) -> None:
    subject = await _subject(client, admin_headers)
    assignment = await _assign(client, admin_headers, school, subject)

    res = await client.get("/api/v1/teacher-assignments/mine", headers=school.teacher_headers)
    assert res.status_code == 200
    assert [a["id"] for a in res.json()] == [assignment["id"]]

    res = await client.post(
        "/api/v1/teacher-assignments",
        json={"teacher_id": str(school.teacher.id), "class_id": str(school.grade.id), "subject_id": subject["id"]},
        headers=admin_headers,
    )
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_unassigned_teacher_cannot_mark_attendance(client: AsyncClient, admin_headers, school) -> None:
    subject = await _subject(client, admin_headers)
    res = await client.post(
        "/api/v1/attendance/class", json=_bulk_attendance(school, subject, date.today()), headers=school.teacher_headers
    )
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_bulk_attendance_upserts_and_summarises(client: AsyncClient, admin_headers, school) -> None:
    subject = await _subject(client, admin_headers)
    await _assign(client, admin_headers, school, subject)
    today = date.today()

    res = await client.post(
        "/api/v1/attendance/class", json=_bulk_attendance(school, subject, today), headers=school.teacher_headers
    )
    assert res.status_code == 200, res.text
    rows = {r["student_id"]: r for r in res.json()}
    assert rows[str(school.student_a.id)]["is_present"] is True
    assert rows[str(school.student_b.id)]["is_present"] is False

    res = await client.post(
        "/api/v1/attendance/class",
        json=_bulk_attendance(school, subject, today, status_b="Late"),
        headers=school.teacher_headers,
    )
    assert res.status_code == 200
    rows = {r["student_id"]: r for r in res.json()}
    assert rows[str(school.student_b.id)]["status"] == "Late"
    assert rows[str(school.student_b.id)]["is_present"] is True

    res = await client.get("/api/v1/attendance", params={"class_id": str(school.grade.id)}, headers=admin_headers)
    assert len(res.json()) == 2

    res = await client.get("/api/v1/attendance/mine", headers=school.student_a_headers)
    assert [r["student_id"] for r in res.json()] == [str(school.student_a.id)]


@pytest.mark.asyncio
async def test_attendance_cannot_be_marked_in_the_future(client: AsyncClient, admin_headers, school) -> None:
    subject = await _subject(client, admin_headers)
    res = await client.post(
        "/api/v1/attendance/class",
        json=_bulk_attendance(school, subject, date.today() + timedelta(days=1)),
        headers=admin_headers,
    )
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_exam_and_marks_flow(client: AsyncClient, admin_headers, school) -> None:
    subject = await _subject(client, admin_headers)
    exam_body = {
        "name": "Midterm",
        "exam_date": date.today().isoformat(),
        "class_id": str(school.grade.id),
        "subject_id": subject["id"],
        "max_marks": 50,
    }
    res = await client.post("/api/v1/exams", json=exam_body, headers=school.teacher_headers)
    assert res.status_code == 403

    await _assign(client, admin_headers, school, subject)
    res = await client.post("/api/v1/exams", json=exam_body, headers=school.teacher_headers)
    assert res.status_code == 201, res.text
    exam = res.json()
    assert exam["teacher_id"] == str(school.teacher.id)

    marks_url = f"/api/v1/exams/{exam['id']}/marks"
    res = await client.post(
        marks_url, json={"records": [{"student_id": str(school.student_a.id), "marks_obtained": 51}]},
        headers=school.teacher_headers,
    )
    assert res.status_code == 422

    res = await client.post(
        marks_url,
        json={"records": [
            {"student_id": str(school.student_a.id), "marks_obtained": 42},
            {"student_id": str(school.student_b.id), "marks_obtained": 30},
        ]},
        headers=school.teacher_headers,
    )
    assert res.status_code == 200, res.text

    res = await client.post(
        marks_url, json={"records": [{"student_id": str(school.student_a.id), "marks_obtained": 45}]},
        headers=school.teacher_headers,
    )
    assert res.json()[0]["marks_obtained"] == 45

    res = await client.get("/api/v1/marks/mine", headers=school.student_a_headers)
    assert [m["marks_obtained"] for m in res.json()] == [45]

    res = await client.get(f"/api/v1/marks/children/{school.student_a.id}", headers=school.parent_a_headers)
    assert res.status_code == 200
    res = await client.get(f"/api/v1/marks/children/{school.student_a.id}", headers=school.parent_b_headers)
    assert res.status_code == 403

    res = await client.put(f"/api/v1/exams/{exam['id']}", json={"max_marks": 40}, headers=school.teacher_headers)
    assert res.status_code == 422

    res = await client.delete(f"/api/v1/exams/{exam['id']}", headers=admin_headers)
    assert res.status_code == 409


@pytest.mark.asyncio
async def test_admin_exam_requires_teacher(client: AsyncClient, admin_headers, school) -> None:
    subject = await _subject(client, admin_headers)
    res = await client.post(
        "/api/v1/exams",
        json={"name": "Quiz", "exam_date": date.today().isoformat(), "class_id": str(school.grade.id), "subject_id": subject["id"]},
        headers=admin_headers,
    )
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_parent_link_and_unlink(client: AsyncClient, admin_headers, school) -> None:
    url = f"/api/v1/parents/{school.parent_a.id}/students/{school.student_b.id}"
    res = await client.post(url, headers=admin_headers)
    assert res.status_code in (200, 201), res.text
    res = await client.post(url, headers=admin_headers)
    assert res.status_code in (200, 201)

    res = await client.get(f"/api/v1/parents/by-student/{school.student_b.id}", headers=admin_headers)
    assert {p["id"] for p in res.json()} == {str(school.parent_a.id), str(school.parent_b.id)}

    res = await client.delete(url, headers=admin_headers)
    assert res.status_code in (200, 204)
    res = await client.delete(url, headers=admin_headers)
    assert res.status_code == 409


@pytest.mark.asyncio
async def test_parent_with_invoice_cannot_be_unlinked(client: AsyncClient, admin_headers, school) -> None:
    res = await client.post("/api/v1/invoices", json=invoice_payload(school), headers=admin_headers)
    assert res.status_code == 201
    res = await client.delete(
        f"/api/v1/parents/{school.parent_a.id}/students/{school.student_a.id}", headers=admin_headers
    )
    assert res.status_code == 409


@pytest.mark.asyncio
async def test_dashboards(client: AsyncClient, admin_headers, school) -> None:
    res = await client.post("/api/v1/invoices", json=invoice_payload(school, amount="200.00"), headers=admin_headers)
    invoice = res.json()
    await client.post(f"/api/v1/invoices/{invoice['id']}/payments", json={"amount": "50.00"}, headers=admin_headers)

    res = await client.get("/api/v1/dashboard/admin", headers=admin_headers)
    assert res.status_code == 200, res.text
    data = res.json()
    assert data["students"] == 2
    assert data["teachers"] == 1
    assert money(data["fees"]["invoiced"]) == money("200.00")
    assert money(data["fees"]["collected"]) == money("50.00")
    assert money(data["fees"]["outstanding"]) == money("150.00")

    res = await client.get("/api/v1/dashboard/parent", headers=school.parent_a_headers)
    assert res.status_code == 200, res.text
    data = res.json()
    assert [c["student_id"] for c in data["children"]] == [str(school.student_a.id)]
    assert money(data["outstanding_balance"]) == money("150.00")
    assert len(data["recent_payments"]) == 1

    res = await client.get("/api/v1/dashboard/student", headers=school.student_a_headers)
    assert res.status_code == 200, res.text
    assert res.json()["student_id"] == str(school.student_a.id)

    res = await client.get("/api/v1/dashboard/admin", headers=school.parent_a_headers)
    assert res.status_code == 403
