import re
from datetime import date, timedelta
from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import invoice_payload, money
from school_admin.core.models import Invoice, Payment


INVOICE_NUMBER = re.compile(r"^INV-\d{8}-\d{4}$")


async def _create(client: AsyncClient, admin_headers, school, **kwargs) -> dict:
    res = await client.post("/api/v1/invoices", json=invoice_payload(school, **kwargs), headers=admin_headers)
    assert res.status_code == 201, res.text
    return res.json()


@pytest.mark.asyncio
async def test_create_invoice_numbers_and_totals(client: AsyncClient, admin_headers, school) -> None:
    payload = invoice_payload(school)
    payload["items"].append({"fee_type_id": str(school.bus.id), "description": "Bus", "amount": "120.50"})
    res = await client.post("/api/v1/invoices", json=payload, headers=admin_headers)
    assert res.status_code == 201, res.text
    data = res.json()
    assert INVOICE_NUMBER.match(data["invoice_number"])
    assert money(data["total_amount"]) == money("620.50")
    assert money(data["balance_due"]) == money("620.50")
    assert data["status"] == "Outstanding"
    assert [i["position"] for i in data["items"]] == [0, 1]

    second = await _create(client, admin_headers, school)
    assert second["invoice_number"] != data["invoice_number"]


@pytest.mark.asyncio
async def test_create_invoice_requires_items_and_valid_dates(client: AsyncClient, admin_headers, school) -> None:
    res = await client.post("/api/v1/invoices", json=invoice_payload(school, items=[]), headers=admin_headers)
    assert res.status_code == 422

    res = await client.post(
        "/api/v1/invoices",
        json=invoice_payload(school, issue_date=date.today().isoformat(), due_date=(date.today() - timedelta(days=1)).isoformat()),
        headers=admin_headers,
    )
    assert res.status_code == 422
    assert "Due date" in res.json()["detail"]


@pytest.mark.asyncio
async def test_create_invoice_rejects_unlinked_parent(client: AsyncClient, admin_headers, school) -> None:
    res = await client.post(
        "/api/v1/invoices",
        json=invoice_payload(school, parent_id=str(school.parent_b.id)),
        headers=admin_headers,
    )
    assert res.status_code == 422
    assert res.json()["detail"] == "Parent is not linked to this student"


@pytest.mark.asyncio
async def test_non_admin_cannot_create_invoice(client: AsyncClient, school) -> None:
    res = await client.post("/api/v1/invoices", json=invoice_payload(school), headers=school.parent_a_headers)
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_admin_payment_flow(client: AsyncClient, admin_headers, school) -> None:
    invoice = await _create(client, admin_headers, school, amount="500.00")
    url = f"/api/v1/invoices/{invoice['id']}/payments"

    res = await client.post(url, json={"amount": "200.00", "payment_method": "Cash"}, headers=admin_headers)
    assert res.status_code == 201, res.text
    data = res.json()
    assert data["status"] == "Partially Paid"
    assert money(data["balance_due"]) == money("300.00")
    assert len(data["payments"]) == 1

    res = await client.post(url, json={"amount": "300.01"}, headers=admin_headers)
    assert res.status_code == 422
    assert res.json()["detail"] == "Payment amount cannot exceed remaining balance"

    res = await client.post(url, json={"amount": "300.00", "payment_method": "Card"}, headers=admin_headers)
    assert res.status_code == 201
    assert res.json()["status"] == "Paid"

    res = await client.post(url, json={"amount": "1.00"}, headers=admin_headers)
    assert res.status_code == 409

    res = await client.get(f"/api/v1/invoices/{invoice['id']}/balance", headers=admin_headers)
    assert res.status_code == 200
    assert money(res.json()["balance_due"]) == money("0")


@pytest.mark.asyncio
async def test_payment_amount_must_be_positive(client: AsyncClient, admin_headers, school) -> None:
    invoice = await _create(client, admin_headers, school)
    res = await client.post(f"/api/v1/invoices/{invoice['id']}/payments", json={"amount": "0"}, headers=admin_headers)
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_parent_pays_own_invoice(client: AsyncClient, admin_headers, school) -> None:
    invoice = await _create(client, admin_headers, school, amount="150.00")

    res = await client.get("/api/v1/parent/invoices", headers=school.parent_a_headers)
    assert res.status_code == 200
    assert [i["id"] for i in res.json()] == [invoice["id"]]

    res = await client.post(
        f"/api/v1/parent/invoices/{invoice['id']}/payments",
        json={"amount": "150.00", "transaction_id": "TXN-1"},
        headers=school.parent_a_headers,
    )
    assert res.status_code == 201, res.text
    data = res.json()
    assert data["status"] == "Paid"
    assert data["payments"][0]["payment_method"] == "Online (Parent)"

    res = await client.get("/api/v1/parent/payments", headers=school.parent_a_headers)
    assert res.status_code == 200
    assert len(res.json()) == 1


@pytest.mark.asyncio
async def test_parent_cannot_pay_or_see_other_parents_invoice(client: AsyncClient, admin_headers, school) -> None:
    invoice = await _create(client, admin_headers, school)

    res = await client.post(
        f"/api/v1/parent/invoices/{invoice['id']}/payments",
        json={"amount": "10.00"},
        headers=school.parent_b_headers,
    )
    assert res.status_code == 403

    res = await client.get(f"/api/v1/invoices/{invoice['id']}", headers=school.parent_b_headers)
    assert res.status_code == 403

    res = await client.get("/api/v1/parent/invoices", headers=school.parent_b_headers)
    assert res.json() == []


@pytest.mark.asyncio
async def test_parent_cannot_overpay(client: AsyncClient, admin_headers, school) -> None:
    invoice = await _create(client, admin_headers, school, amount="100.00")
    res = await client.post(
        f"/api/v1/parent/invoices/{invoice['id']}/payments",
        json={"amount": "100.01"},
        headers=school.parent_a_headers,
    )
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_student_sees_only_own_invoices(client: AsyncClient, admin_headers, school) -> None:
    own = await _create(client, admin_headers, school)
    await _create(
        client, admin_headers, school,
        student_id=str(school.student_b.id), parent_id=str(school.parent_b.id),
    )
    res = await client.get("/api/v1/invoices/mine", headers=school.student_a_headers)
    assert res.status_code == 200
    assert [i["id"] for i in res.json()] == [own["id"]]


@pytest.mark.asyncio
async def test_item_management(client: AsyncClient, admin_headers, school) -> None:
    invoice = await _create(client, admin_headers, school, amount="100.00")
    base = f"/api/v1/invoices/{invoice['id']}/items"

    res = await client.post(
        base,
        json={"fee_type_id": str(school.bus.id), "description": "Bus", "amount": "40.00"},
        headers=admin_headers,
    )
    assert res.status_code == 201, res.text
    data = res.json()
    assert money(data["total_amount"]) == money("140.00")
    bus_item = data["items"][1]

    res = await client.put(f"{base}/{bus_item['id']}", json={"amount": "60.00"}, headers=admin_headers)
    assert res.status_code == 200
    assert money(res.json()["total_amount"]) == money("160.00")

    res = await client.delete(f"{base}/{bus_item['id']}", headers=admin_headers)
    assert res.status_code == 200
    data = res.json()
    assert money(data["total_amount"]) == money("100.00")

    res = await client.delete(f"{base}/{data['items'][0]['id']}", headers=admin_headers)
    assert res.status_code == 409


@pytest.mark.asyncio
async def test_update_invoice_replaces_items(client: AsyncClient, admin_headers, school) -> None:
    invoice = await _create(client, admin_headers, school, amount="100.00")
    tuition_item = invoice["items"][0]
    res = await client.put(
        f"/api/v1/invoices/{invoice['id']}",
        json={
            "notes": "Term 2",
            "items": [
                {"id": tuition_item["id"], "fee_type_id": str(school.tuition.id), "description": "Tuition", "amount": "80.00"},
                {"fee_type_id": str(school.bus.id), "description": "Bus", "amount": "20.00"},
            ],
        },
        headers=admin_headers,
    )
    assert res.status_code == 200, res.text
    data = res.json()
    assert data["notes"] == "Term 2"
    assert money(data["total_amount"]) == money("100.00")
    assert data["items"][0]["id"] == tuition_item["id"]
    assert len(data["items"]) == 2


@pytest.mark.asyncio
async def test_waive_and_unwaive(client: AsyncClient, admin_headers, school) -> None:
    invoice = await _create(client, admin_headers, school)
    res = await client.post(
        f"/api/v1/invoices/{invoice['id']}/waive", json={"reason": "Scholarship"}, headers=admin_headers
    )
    assert res.status_code == 200, res.text
    assert res.json()["status"] == "Waived"

    res = await client.post(f"/api/v1/invoices/{invoice['id']}/payments", json={"amount": "1.00"}, headers=admin_headers)
    assert res.status_code == 409

    res = await client.post(f"/api/v1/invoices/{invoice['id']}/unwaive", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["status"] == "Outstanding"


@pytest.mark.asyncio
async def test_refund_reopens_invoice(client: AsyncClient, admin_headers, school) -> None:
    invoice = await _create(client, admin_headers, school, amount="100.00")
    res = await client.post(f"/api/v1/invoices/{invoice['id']}/payments", json={"amount": "100.00"}, headers=admin_headers)
    payment_id = res.json()["payments"][0]["id"]

    res = await client.put(f"/api/v1/payments/{payment_id}/status", json={"status": "Refunded"}, headers=admin_headers)
    assert res.status_code == 200, res.text
    assert res.json()["status"] == "Refunded"

    res = await client.get(f"/api/v1/invoices/{invoice['id']}", headers=admin_headers)
    assert res.json()["status"] == "Outstanding"
    assert money(res.json()["amount_paid"]) == money("0")


@pytest.mark.asyncio
async def test_delete_invoice_keeps_payments(
    client: AsyncClient, admin_headers, school, db_session: AsyncSession
) -> None:
    invoice = await _create(client, admin_headers, school, amount="100.00")
    await client.post(f"/api/v1/invoices/{invoice['id']}/payments", json={"amount": "40.00"}, headers=admin_headers)

    res = await client.delete(f"/api/v1/invoices/{invoice['id']}", headers=admin_headers)
    assert res.status_code == 204

    res = await client.get(f"/api/v1/invoices/{invoice['id']}", headers=admin_headers)
    assert res.status_code == 404

    payments = (
        await db_session.execute(select(Payment).where(Payment.student_id == school.student_a.id))
    ).scalars().all()
    assert len(payments) == 1
    assert payments[0].invoice_id is None


@pytest.mark.asyncio
async def test_list_invoices_filters_by_status(client: AsyncClient, admin_headers, school) -> None:
    paid = await _create(client, admin_headers, school, amount="50.00")
    await client.post(f"/api/v1/invoices/{paid['id']}/payments", json={"amount": "50.00"}, headers=admin_headers)
    overdue = await _create(
        client, admin_headers, school,
        issue_date=(date.today() - timedelta(days=20)).isoformat(),
        due_date=(date.today() - timedelta(days=5)).isoformat(),
    )
    open_one = await _create(client, admin_headers, school)

    res = await client.get("/api/v1/invoices", params={"status": "Paid"}, headers=admin_headers)
    assert [i["id"] for i in res.json()] == [paid["id"]]

    res = await client.get("/api/v1/invoices", params={"status": "Overdue"}, headers=admin_headers)
    assert [i["id"] for i in res.json()] == [overdue["id"]]

    res = await client.get("/api/v1/invoices", params={"status": "Outstanding"}, headers=admin_headers)
    assert [i["id"] for i in res.json()] == [open_one["id"]]

    res = await client.get("/api/v1/invoices", headers=admin_headers)
    assert len(res.json()) == 3


@pytest.mark.asyncio
async def test_failed_payment_is_recorded_but_not_counted(
    client: AsyncClient, admin_headers, school, db_session: AsyncSession
) -> None:
    invoice = await _create(client, admin_headers, school, amount="100.00")
    res = await client.post(
        f"/api/v1/invoices/{invoice['id']}/payments",
        json={"amount": "100.00", "status": "Failed"},
        headers=admin_headers,
    )
    assert res.status_code == 201
    assert res.json()["status"] == "Outstanding"
    count = (await db_session.execute(select(func.count(Payment.id)))).scalar()
    assert count == 1


@pytest.mark.asyncio
async def test_create_invoice_keeps_supplied_number(client: AsyncClient, admin_headers, school) -> None:
    invoice = await _create(client, admin_headers, school, invoice_number=" TERM1-0001 ")
    assert invoice["invoice_number"] == "TERM1-0001"

    res = await client.post(
        "/api/v1/invoices", json=invoice_payload(school, invoice_number="TERM1-0001"), headers=admin_headers
    )
    assert res.status_code == 422
    assert res.json()["detail"] == "An invoice with this number already exists"

    generated = await _create(client, admin_headers, school, invoice_number=None)
    assert INVOICE_NUMBER.match(generated["invoice_number"])


@pytest.mark.asyncio
async def test_update_invoice_rejects_repeated_item_id(client: AsyncClient, admin_headers, school) -> None:
    invoice = await _create(client, admin_headers, school, amount="100.00")
    item = invoice["items"][0]
    repeated = {"id": item["id"], "fee_type_id": str(school.tuition.id), "description": "Tuition", "amount": "60.00"}
    res = await client.put(
        f"/api/v1/invoices/{invoice['id']}", json={"items": [repeated, repeated]}, headers=admin_headers
    )
    assert res.status_code == 422
    assert res.json()["detail"] == "Duplicate item id in items"

    res = await client.get(f"/api/v1/invoices/{invoice['id']}", headers=admin_headers)
    assert money(res.json()["total_amount"]) == money("100.00")
    assert len(res.json()["items"]) == 1


@pytest.mark.asyncio
async def test_completing_pending_payment_on_paid_invoice_is_refused(
    client: AsyncClient, admin_headers, school
) -> None:
    invoice = await _create(client, admin_headers, school)
    url = f"/api/v1/invoices/{invoice['id']}/payments"
    res = await client.post(url, json={"amount": "500.00", "status": "Pending"}, headers=admin_headers)
    assert res.status_code == 201, res.text
    pending_id = res.json()["payments"][0]["id"]
    res = await client.post(url, json={"amount": "500.00"}, headers=admin_headers)
    assert res.json()["status"] == "Paid"

    res = await client.put(f"/api/v1/payments/{pending_id}/status", json={"status": "Completed"}, headers=admin_headers)
    assert res.status_code == 409

    res = await client.get(f"/api/v1/invoices/{invoice['id']}", headers=admin_headers)
    assert money(res.json()["amount_paid"]) == money("500.00")
    assert res.json()["status"] == "Paid"


@pytest.mark.asyncio
async def test_completing_pending_payment_respects_balance(client: AsyncClient, admin_headers, school) -> None:
    invoice = await _create(client, admin_headers, school, amount="100.00")
    url = f"/api/v1/invoices/{invoice['id']}/payments"
    res = await client.post(url, json={"amount": "80.00", "status": "Pending"}, headers=admin_headers)
    pending_id = res.json()["payments"][0]["id"]
    await client.post(url, json={"amount": "50.00"}, headers=admin_headers)

    status_url = f"/api/v1/payments/{pending_id}/status"
    res = await client.put(status_url, json={"status": "Completed"}, headers=admin_headers)
    assert res.status_code == 422

    res = await client.get(f"/api/v1/invoices/{invoice['id']}", headers=admin_headers)
    assert money(res.json()["amount_paid"]) == money("50.00")
    assert res.json()["status"] == "Partially Paid"


@pytest.mark.asyncio
async def test_payment_checks_use_reconciled_state(
    client: AsyncClient, admin_headers, school, db_session: AsyncSession
) -> None:
    invoice = await _create(client, admin_headers, school, amount="100.00")
    url = f"/api/v1/invoices/{invoice['id']}/payments"
    res = await client.post(url, json={"amount": "100.00"}, headers=admin_headers)
    assert res.json()["status"] == "Paid"

    # Stored columns drift from the payments on record
    await db_session.execute(
        update(Invoice).where(Invoice.id == UUID(invoice["id"])).values(status="Outstanding", amount_paid=0)
    )
    await db_session.commit()

    res = await client.post(url, json={"amount": "100.00"}, headers=admin_headers)
    assert res.status_code == 409

    count = (await db_session.execute(select(func.count(Payment.id)))).scalar()
    assert count == 1
