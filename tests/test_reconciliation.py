"""Invoice reconciliation: amount paid, status machine, payment recording."""

import uuid
from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from conftest import invoice_payload
from school_admin.api.v1.invoices import service as invoice_service
from school_admin.api.v1.invoices.reconciliation import (
    amount_paid_for,
    commit_invoice,
    compute_status,
    load_invoice,
    recompute,
    reconcile,
    record_payment,
)
from school_admin.api.v1.invoices.schemas import InvoiceCreate, InvoiceItemCreate
from school_admin.core.enums import InvoiceStatus, PaymentStatus
from school_admin.core.exceptions import StateConflictError, ValidationError
from school_admin.core.models import FeeType, Invoice, Parent, Payment, Student
from school_admin.db.session import Base

TODAY = date(2024, 6, 15)


async def _create_invoice(db: AsyncSession, school: SimpleNamespace, amount: str = "500.00", **overrides) -> Invoice:
    payload = InvoiceCreate(**invoice_payload(school, amount=amount, **overrides))
    detail = await invoice_service.create_invoice(db, payload)
    return await load_invoice(db, detail.id)


async def _payment_count(db: AsyncSession, invoice_id) -> int:
    return (await db.execute(select(func.count(Payment.id)).where(Payment.invoice_id == invoice_id))).scalar()


# ----- Pure status machine -----
def test_status_outstanding_when_nothing_paid_before_due_date() -> None:
    assert compute_status(Decimal("500"), Decimal("0"), TODAY + timedelta(days=10), today=TODAY) == "Outstanding"


def test_status_partially_paid() -> None:
    assert compute_status(Decimal("500"), Decimal("200"), TODAY + timedelta(days=10), today=TODAY) == "Partially Paid"


def test_status_paid_when_balance_reaches_zero_even_if_past_due() -> None:
    assert compute_status(Decimal("500"), Decimal("500"), TODAY - timedelta(days=3), today=TODAY) == "Paid"
    assert compute_status(Decimal("500"), Decimal("600"), TODAY - timedelta(days=3), today=TODAY) == "Paid"


def test_status_overdue_when_unpaid_after_due_date() -> None:
    yesterday = TODAY - timedelta(days=1)
    assert compute_status(Decimal("100"), Decimal("0"), yesterday, today=TODAY) == "Overdue"
    assert compute_status(Decimal("100"), Decimal("40"), yesterday, today=TODAY) == "Overdue"


def test_status_not_overdue_on_the_due_date_itself() -> None:
    assert compute_status(Decimal("100"), Decimal("0"), TODAY, today=TODAY) == "Outstanding"


def test_waived_flag_wins_over_balance() -> None:
    assert compute_status(Decimal("100"), Decimal("0"), TODAY - timedelta(days=30), is_waived=True, today=TODAY) == "Waived"


def test_only_completed_payments_count() -> None:
    payments = [
        Payment(amount=Decimal("100"), status=PaymentStatus.COMPLETED.value),
        Payment(amount=Decimal("50"), status=PaymentStatus.PENDING.value),
        Payment(amount=Decimal("25"), status=PaymentStatus.FAILED.value),
        Payment(amount=Decimal("10"), status=PaymentStatus.REFUNDED.value),
        Payment(amount=Decimal("5.50"), status=PaymentStatus.COMPLETED.value),
    ]
    assert amount_paid_for(payments) == Decimal("105.50")
    assert amount_paid_for([]) == Decimal("0")


# ----- Engine against the database -----
@pytest.mark.asyncio
async def test_payment_scenarios_outstanding_partial_paid(db_session: AsyncSession, school) -> None:
    invoice = await _create_invoice(db_session, school, amount="500.00")
    assert invoice.status == InvoiceStatus.OUTSTANDING.value
    assert invoice.balance_due == Decimal("500.00")

    assert await record_payment(db_session, invoice.id, Decimal("200.00"), "Cash") is True
    invoice = await load_invoice(db_session, invoice.id)
    assert invoice.amount_paid == Decimal("200.00")
    assert invoice.balance_due == Decimal("300.00")
    assert invoice.status == InvoiceStatus.PARTIALLY_PAID.value

    assert await record_payment(db_session, invoice.id, Decimal("300.00"), "Card") is True
    invoice = await load_invoice(db_session, invoice.id)
    assert invoice.amount_paid == Decimal("500.00")
    assert invoice.balance_due == Decimal("0.00")
    assert invoice.status == InvoiceStatus.PAID.value


@pytest.mark.asyncio
async def test_payment_copies_student_and_parent_from_invoice(db_session: AsyncSession, school) -> None:
    invoice = await _create_invoice(db_session, school)
    await record_payment(db_session, invoice.id, Decimal("50.00"), "Cash", notes="first instalment")
    payment = (await db_session.execute(select(Payment).where(Payment.invoice_id == invoice.id))).scalar_one()
    assert payment.student_id == school.student_a.id
    assert payment.parent_id == school.parent_a.id
    assert payment.notes == "first instalment"


@pytest.mark.asyncio
async def test_overdue_invoice_without_payments(db_session: AsyncSession, school) -> None:
    issue = date.today() - timedelta(days=30)
    invoice = await _create_invoice(
        db_session, school, amount="100.00",
        issue_date=issue.isoformat(), due_date=(date.today() - timedelta(days=1)).isoformat(),
    )
    assert invoice.status == InvoiceStatus.OVERDUE.value


@pytest.mark.asyncio
async def test_paid_invoice_rejects_payment_and_writes_nothing(db_session: AsyncSession, school) -> None:
    invoice = await _create_invoice(db_session, school, amount="100.00")
    assert await record_payment(db_session, invoice.id, Decimal("100.00"), "Cash")
    before = await _payment_count(db_session, invoice.id)

    assert await record_payment(db_session, invoice.id, Decimal("10.00"), "Cash") is False
    assert await _payment_count(db_session, invoice.id) == before


@pytest.mark.asyncio
async def test_waived_invoice_rejects_payment(db_session: AsyncSession, school) -> None:
    invoice = await _create_invoice(db_session, school, amount="100.00")
    await invoice_service.waive_invoice(db_session, invoice.id)
    assert await record_payment(db_session, invoice.id, Decimal("10.00"), "Cash") is False
    assert await _payment_count(db_session, invoice.id) == 0


@pytest.mark.asyncio
async def test_missing_invoice_returns_false(db_session: AsyncSession) -> None:
    assert await record_payment(db_session, uuid.uuid4(), Decimal("10.00"), "Cash") is False


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00")])
async def test_non_positive_amount_is_rejected(db_session: AsyncSession, school, amount) -> None:
    invoice = await _create_invoice(db_session, school)
    with pytest.raises(ValidationError):
        await record_payment(db_session, invoice.id, amount, "Cash")
    assert await _payment_count(db_session, invoice.id) == 0


@pytest.mark.asyncio
async def test_pending_payment_does_not_count_until_completed(db_session: AsyncSession, school) -> None:
    invoice = await _create_invoice(db_session, school, amount="100.00")
    await record_payment(db_session, invoice.id, Decimal("100.00"), "Bank Transfer", status=PaymentStatus.PENDING.value)
    invoice = await load_invoice(db_session, invoice.id)
    assert invoice.amount_paid == Decimal("0")
    assert invoice.status == InvoiceStatus.OUTSTANDING.value

    payment = invoice.payments[0]
    await invoice_service.update_payment_status(db_session, payment.id, PaymentStatus.COMPLETED)
    invoice = await load_invoice(db_session, invoice.id)
    assert invoice.status == InvoiceStatus.PAID.value


@pytest.mark.asyncio
async def test_refund_reopens_paid_invoice(db_session: AsyncSession, school) -> None:
    invoice = await _create_invoice(db_session, school, amount="300.00")
    await record_payment(db_session, invoice.id, Decimal("100.00"), "Cash")
    await record_payment(db_session, invoice.id, Decimal("200.00"), "Cash")
    invoice = await load_invoice(db_session, invoice.id)
    assert invoice.status == InvoiceStatus.PAID.value

    big = max(invoice.payments, key=lambda p: p.amount)
    await invoice_service.update_payment_status(db_session, big.id, PaymentStatus.REFUNDED)
    invoice = await load_invoice(db_session, invoice.id)
    assert invoice.amount_paid == Decimal("100.00")
    assert invoice.status == InvoiceStatus.PARTIALLY_PAID.value


@pytest.mark.asyncio
async def test_waiver_is_sticky_across_item_edits(db_session: AsyncSession, school) -> None:
    invoice = await _create_invoice(db_session, school, amount="100.00")
    await invoice_service.waive_invoice(db_session, invoice.id, reason="scholarship")

    detail = await invoice_service.add_item(
        db_session,
        invoice.id,
        InvoiceItemCreate(fee_type_id=school.bus.id, description="Bus", amount=Decimal("40.00")),
    )
    assert detail.status == InvoiceStatus.WAIVED.value
    assert detail.total_amount == Decimal("140.00")

    invoice = await recompute(db_session, invoice.id)
    assert invoice.status == InvoiceStatus.WAIVED.value

    detail = await invoice_service.unwaive_invoice(db_session, invoice.id)
    assert detail.status == InvoiceStatus.OUTSTANDING.value
    assert detail.is_waived is False


@pytest.mark.asyncio
async def test_item_edits_keep_total_equal_to_items(db_session: AsyncSession, school) -> None:
    invoice = await _create_invoice(db_session, school, amount="100.00")
    detail = await invoice_service.add_item(
        db_session,
        invoice.id,
        InvoiceItemCreate(fee_type_id=school.bus.id, description="Bus", amount=Decimal("25.50")),
    )
    assert detail.total_amount == Decimal("125.50")
    assert sum(i.amount for i in detail.items) == detail.total_amount

    bus_item = detail.items[-1]
    detail = await invoice_service.remove_item(db_session, invoice.id, bus_item.id)
    assert detail.total_amount == Decimal("100.00")
    assert [i.position for i in detail.items] == [0]


@pytest.mark.asyncio
async def test_recompute_is_idempotent(db_session: AsyncSession, school) -> None:
    invoice = await _create_invoice(db_session, school, amount="500.00")
    await record_payment(db_session, invoice.id, Decimal("200.00"), "Cash")
    invoice = await recompute(db_session, invoice.id, today=TODAY)
    version = invoice.version_id
    assert reconcile(invoice, TODAY) is False
    again = await recompute(db_session, invoice.id, today=TODAY)
    assert again.version_id == version


@pytest.mark.asyncio
async def test_recompute_moves_unpaid_invoice_to_overdue(db_session: AsyncSession, school) -> None:
    invoice = await _create_invoice(db_session, school, amount="500.00")
    later = invoice.due_date + timedelta(days=1)
    invoice = await recompute(db_session, invoice.id, today=later)
    assert invoice.status == InvoiceStatus.OVERDUE.value


@pytest.mark.asyncio
async def test_recompute_missing_invoice_returns_none(db_session: AsyncSession) -> None:
    assert await recompute(db_session, uuid.uuid4()) is None


@pytest.mark.asyncio
async def test_stale_invoice_version_raises_conflict(tmp_path) -> None:
    """Two sessions on separate connections: the one holding an old version loses."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'stale.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as setup:
        fee = FeeType(name="Tuition")
        student = Student(first_name="Sam", last_name="Stale", email="sam@school.example.com")
        parent = Parent(first_name="Pat", last_name="Stale", email="pat@school.example.com")
        setup.add_all([fee, student, parent])
        await setup.commit()
        detail = await invoice_service.create_invoice(
            setup,
            InvoiceCreate(
                student_id=student.id,
                parent_id=parent.id,
                due_date=date.today() + timedelta(days=10),
                items=[InvoiceItemCreate(fee_type_id=fee.id, description="Tuition", amount=Decimal("100.00"))],
            ),
        )

    try:
        async with factory() as first, factory() as second:
            stale = await first.get(Invoice, detail.id)
            assert await record_payment(second, detail.id, Decimal("40.00"), "Cash")

            stale.notes = "edited from an old copy"
            with pytest.raises(StateConflictError):
                await commit_invoice(first, detail.id)
    finally:
        await engine.dispose()
