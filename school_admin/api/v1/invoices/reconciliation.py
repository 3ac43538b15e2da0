"""
Invoice reconciliation: amount paid, balance due and status.

amount_paid is the sum of the invoice's Completed payments. Status follows
balance and payments (Paid > Partially Paid > Outstanding, then Overdue when
unpaid past the due date). Waived is an administrative flag; while it is set
the status stays Waived and only amount_paid is refreshed.

Every write reloads the invoice with its items and payments in the caller's
transaction, so amounts are never computed from a cached payment set.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from school_admin.core.enums import SETTLED_INVOICE_STATUSES, InvoiceStatus, PaymentStatus
from school_admin.core.exceptions import CONCURRENT_MODIFICATION_MESSAGE, StateConflictError, ValidationError
from school_admin.core.models import Invoice, Payment
from school_admin.core.services import to_decimal

logger = logging.getLogger(__name__)

COUNTED_PAYMENT_STATUSES = (PaymentStatus.COMPLETED.value,)


def amount_paid_for(payments: Iterable[Payment]) -> Decimal:
    return sum(
        (to_decimal(p.amount) for p in payments if p.status in COUNTED_PAYMENT_STATUSES),
        Decimal("0"),
    )


def compute_status(
    total_amount: Decimal,
    amount_paid: Decimal,
    due_date: Optional[date],
    is_waived: bool = False,
    today: Optional[date] = None,
) -> str:
    if is_waived:
        return InvoiceStatus.WAIVED.value
    today = today or date.today()
    balance = to_decimal(total_amount) - to_decimal(amount_paid)
    if balance <= 0:
        return InvoiceStatus.PAID.value
    if to_decimal(amount_paid) > 0:
        status = InvoiceStatus.PARTIALLY_PAID.value
    else:
        status = InvoiceStatus.OUTSTANDING.value
    if due_date is not None and due_date < today:
        status = InvoiceStatus.OVERDUE.value
    return status


def reconcile(invoice: Invoice, today: Optional[date] = None) -> bool:
    """Refresh total, amount paid and status in memory. Returns True when anything changed."""
    total = sum((to_decimal(i.amount) for i in invoice.items), Decimal("0"))
    paid = amount_paid_for(invoice.payments)
    status = compute_status(total, paid, invoice.due_date, invoice.is_waived, today)
    changed = (
        to_decimal(invoice.total_amount) != total
        or to_decimal(invoice.amount_paid) != paid
        or invoice.status != status
    )
    if changed:
        invoice.total_amount = total
        invoice.amount_paid = paid
        invoice.status = status
    return changed


async def load_invoice(db: AsyncSession, invoice_id: UUID) -> Optional[Invoice]:
    result = await db.execute(
        select(Invoice)
        .where(Invoice.id == invoice_id)
        .options(selectinload(Invoice.items), selectinload(Invoice.payments))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def commit_invoice(db: AsyncSession, invoice_id: Optional[UUID] = None) -> None:
    """Commit an invoice write. A stale version becomes StateConflictError; other DB errors are logged and re-raised."""
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        logger.warning("Concurrent modification of invoice %s", invoice_id)
        raise StateConflictError(CONCURRENT_MODIFICATION_MESSAGE)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to save invoice %s", invoice_id)
        raise


async def recompute(db: AsyncSession, invoice_id: UUID, today: Optional[date] = None) -> Optional[Invoice]:
    invoice = await load_invoice(db, invoice_id)
    if invoice is None:
        return None
    if reconcile(invoice, today):
        await commit_invoice(db, invoice_id)
        invoice = await load_invoice(db, invoice_id)
    return invoice


async def record_payment(
    db: AsyncSession,
    invoice_id: UUID,
    amount: Decimal,
    method: Optional[str],
    payment_date: Optional[date] = None,
    notes: Optional[str] = None,
    transaction_id: Optional[str] = None,
    status: str = PaymentStatus.COMPLETED.value,
    recorded_by: Optional[UUID] = None,
    today: Optional[date] = None,
) -> bool:
    """
    Record a payment against an invoice and reconcile it in one transaction.

    Returns False (and writes nothing) when the invoice does not exist or is
    already Paid or Waived. The amount is not checked against the balance
    here; callers do that first.
    """
    amount = to_decimal(amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero", field="amount")
    invoice = await load_invoice(db, invoice_id)
    if invoice is None:
        logger.info("Payment refused: invoice %s not found", invoice_id)
        return False
    if invoice.is_waived or invoice.status in SETTLED_INVOICE_STATUSES:
        logger.info("Payment refused: invoice %s is %s", invoice.invoice_number, invoice.status)
        return False

    payment = Payment(
        student_id=invoice.student_id,
        parent_id=invoice.parent_id,
        amount=amount,
        payment_date=payment_date or date.today(),
        payment_method=method,
        status=status,
        transaction_id=transaction_id,
        notes=notes,
        recorded_by=recorded_by,
    )
    invoice.payments.append(payment)
    reconcile(invoice, today)
    await commit_invoice(db, invoice_id)
    logger.info(
        "Recorded %s payment of %s on invoice %s (status now %s)",
        status, amount, invoice.invoice_number, invoice.status,
    )
    return True
