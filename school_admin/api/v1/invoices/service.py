"""
Invoices service: invoice and item CRUD, waivers, payments.

Every mutation reloads the invoice in the request's transaction, applies the
change and reconciles totals and status before committing. Payments go
through reconciliation.record_payment after the amount has been checked
against the remaining balance.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_admin.auth.policy import CREATE, READ, ensure_allowed
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import (
    SETTLED_INVOICE_STATUSES,
    InvoiceStatus,
    PaymentMethod,
    PaymentStatus,
    UserRole,
)
from school_admin.core.exceptions import NotFoundError, PermissionDeniedError, StateConflictError, ValidationError
from school_admin.core.models import FeeType, Invoice, InvoiceItem, Parent, Payment, Student, StudentParent
from school_admin.core.services import clean, ensure_unique, exists, get_or_404, id_select, to_decimal

from . import reconciliation
from .schemas import (
    InvoiceBalance,
    InvoiceCreate,
    InvoiceDetailResponse,
    InvoiceItemCreate,
    InvoiceItemResponse,
    InvoiceItemUpdate,
    InvoiceResponse,
    InvoiceUpdate,
    ParentPaymentCreate,
    PaymentCreate,
    PaymentResponse,
)

logger = logging.getLogger(__name__)


def _to_response(inv: Invoice) -> InvoiceResponse:
    return InvoiceResponse(
        id=inv.id,
        invoice_number=inv.invoice_number,
        issue_date=inv.issue_date,
        due_date=inv.due_date,
        student_id=inv.student_id,
        parent_id=inv.parent_id,
        total_amount=to_decimal(inv.total_amount),
        amount_paid=to_decimal(inv.amount_paid),
        balance_due=inv.balance_due,
        status=inv.status,
        is_waived=inv.is_waived,
        notes=inv.notes,
        items=[InvoiceItemResponse.model_validate(i) for i in inv.items],
        created_at=inv.created_at,
        updated_at=inv.updated_at,
    )


def _to_detail(inv: Invoice) -> InvoiceDetailResponse:
    return InvoiceDetailResponse(
        **_to_response(inv).model_dump(),
        payments=[PaymentResponse.model_validate(p) for p in inv.payments],
    )


async def _load_or_404(db: AsyncSession, invoice_id: UUID) -> Invoice:
    invoice = await reconciliation.load_invoice(db, invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return invoice


async def _save(db: AsyncSession, invoice: Invoice, today: Optional[date] = None) -> Invoice:
    """Reconcile, commit and reload so the response reflects what was stored."""
    invoice_id = invoice.id
    reconciliation.reconcile(invoice, today)
    await reconciliation.commit_invoice(db, invoice_id)
    return await _load_or_404(db, invoice_id)


async def _next_invoice_number(db: AsyncSession, issue_date: date) -> str:
    prefix = f"INV-{issue_date:%Y%m%d}-"
    count = (
        await db.execute(
            select(func.count(Invoice.id)).where(Invoice.invoice_number.like(f"{prefix}%"))
        )
    ).scalar() or 0
    seq = count + 1
    while await exists(db, id_select(Invoice, Invoice.invoice_number == f"{prefix}{seq:04d}")):
        seq += 1
    return f"{prefix}{seq:04d}"


async def _validate_parent(db: AsyncSession, student_id: UUID, parent_id: UUID) -> None:
    """The responsible parent must be one of the student's parents when the student has any."""
    await get_or_404(db, Parent, parent_id, "Parent")
    linked = (
        await db.execute(select(StudentParent.parent_id).where(StudentParent.student_id == student_id))
    ).scalars().all()
    if linked and parent_id not in linked:
        raise ValidationError("Parent is not linked to this student", field="parent_id")


async def _validate_fee_type(db: AsyncSession, fee_type_id: UUID) -> None:
    await get_or_404(db, FeeType, fee_type_id, "Fee type")


def _renumber(invoice: Invoice) -> None:
    for pos, item in enumerate(invoice.items):
        item.position = pos


# ----- Invoices -----
async def create_invoice(db: AsyncSession, payload: InvoiceCreate, today: Optional[date] = None) -> InvoiceDetailResponse:
    await get_or_404(db, Student, payload.student_id, "Student")
    await _validate_parent(db, payload.student_id, payload.parent_id)
    for item in payload.items:
        await _validate_fee_type(db, item.fee_type_id)
    issue_date = payload.issue_date or date.today()
    if payload.due_date < issue_date:
        raise ValidationError("Due date cannot be before the issue date", field="due_date")

    number = clean(payload.invoice_number)
    if number:
        await ensure_unique(
            db,
            id_select(Invoice, Invoice.invoice_number == number),
            "An invoice with this number already exists",
            field="invoice_number",
        )
    else:
        number = await _next_invoice_number(db, issue_date)

    invoice = Invoice(
        invoice_number=number,
        issue_date=issue_date,
        due_date=payload.due_date,
        student_id=payload.student_id,
        parent_id=payload.parent_id,
        total_amount=Decimal("0"),
        amount_paid=Decimal("0"),
        status=InvoiceStatus.OUTSTANDING.value,
        is_waived=False,
        notes=clean(payload.notes),
        items=[
            InvoiceItem(
                fee_type_id=item.fee_type_id,
                description=item.description.strip(),
                amount=item.amount,
                position=pos,
            )
            for pos, item in enumerate(payload.items)
        ],
        payments=[],
    )
    reconciliation.reconcile(invoice, today)
    db.add(invoice)
    await reconciliation.commit_invoice(db, invoice.id)
    logger.info("Created invoice %s for student %s total %s", invoice.invoice_number, invoice.student_id, invoice.total_amount)
    return _to_detail(await _load_or_404(db, invoice.id))


async def list_invoices(
    db: AsyncSession,
    caller: CurrentUser,
    status: Optional[InvoiceStatus] = None,
    student_id: Optional[UUID] = None,
    parent_id: Optional[UUID] = None,
    today: Optional[date] = None,
) -> List[InvoiceResponse]:
    """List invoices visible to the caller, reconciled on read. The status filter applies after reconciliation."""
    stmt = select(Invoice).options(selectinload(Invoice.items), selectinload(Invoice.payments))
    if caller.role == UserRole.PARENT.value:
        stmt = stmt.where(Invoice.parent_id == caller.parent_id)
    elif caller.role == UserRole.STUDENT.value:
        stmt = stmt.where(Invoice.student_id == caller.student_id)
    elif not caller.is_admin:
        raise PermissionDeniedError()
    if student_id is not None:
        stmt = stmt.where(Invoice.student_id == student_id)
    if parent_id is not None:
        stmt = stmt.where(Invoice.parent_id == parent_id)
    stmt = stmt.order_by(Invoice.issue_date.desc(), Invoice.invoice_number.desc())
    result = await db.execute(stmt.execution_options(populate_existing=True))
    invoices = list(result.scalars().all())

    changed = [inv for inv in invoices if reconciliation.reconcile(inv, today)]
    if changed:
        await reconciliation.commit_invoice(db)
        logger.info("Reconciled %d invoices on read", len(changed))
    if status is not None:
        invoices = [inv for inv in invoices if inv.status == status.value]
    return [_to_response(inv) for inv in invoices]


async def get_invoice(
    db: AsyncSession,
    caller: CurrentUser,
    invoice_id: UUID,
    today: Optional[date] = None,
) -> InvoiceDetailResponse:
    invoice = await _load_or_404(db, invoice_id)
    ensure_allowed(caller, READ, invoice)
    if reconciliation.reconcile(invoice, today):
        invoice = await _save(db, invoice, today)
    return _to_detail(invoice)


async def get_invoice_balance(db: AsyncSession, caller: CurrentUser, invoice_id: UUID) -> InvoiceBalance:
    detail = await get_invoice(db, caller, invoice_id)
    return InvoiceBalance(
        invoice_id=detail.id,
        invoice_number=detail.invoice_number,
        total_amount=detail.total_amount,
        amount_paid=detail.amount_paid,
        balance_due=detail.balance_due,
        status=detail.status,
    )


async def update_invoice(
    db: AsyncSession,
    invoice_id: UUID,
    payload: InvoiceUpdate,
    today: Optional[date] = None,
) -> InvoiceDetailResponse:
    invoice = await _load_or_404(db, invoice_id)
    if payload.parent_id is not None and payload.parent_id != invoice.parent_id:
        await _validate_parent(db, invoice.student_id, payload.parent_id)
        invoice.parent_id = payload.parent_id
    if payload.issue_date is not None:
        invoice.issue_date = payload.issue_date
    if payload.due_date is not None:
        invoice.due_date = payload.due_date
    if invoice.due_date < invoice.issue_date:
        raise ValidationError("Due date cannot be before the issue date", field="due_date")
    if payload.notes is not None:
        invoice.notes = clean(payload.notes)

    if payload.items is not None:
        current = {item.id: item for item in invoice.items}
        kept: List[InvoiceItem] = []
        seen = set()
        for upsert in payload.items:
            await _validate_fee_type(db, upsert.fee_type_id)
            if upsert.id is not None:
                if upsert.id in seen:
                    raise ValidationError("Duplicate item id in items", field="items")
                seen.add(upsert.id)
                item = current.get(upsert.id)
                if item is None:
                    raise NotFoundError("Invoice item not found")
                item.fee_type_id = upsert.fee_type_id
                item.description = upsert.description.strip()
                item.amount = upsert.amount
            else:
                item = InvoiceItem(
                    fee_type_id=upsert.fee_type_id,
                    description=upsert.description.strip(),
                    amount=upsert.amount,
                )
            kept.append(item)
        # Items left out of the list are deleted as orphans
        invoice.items = kept
        _renumber(invoice)

    invoice = await _save(db, invoice, today)
    logger.info("Updated invoice %s (total %s, status %s)", invoice.invoice_number, invoice.total_amount, invoice.status)
    return _to_detail(invoice)


async def delete_invoice(db: AsyncSession, invoice_id: UUID) -> None:
    """Delete an invoice and its items. Payments stay on record, detached from the invoice."""
    invoice = await _load_or_404(db, invoice_id)
    number = invoice.invoice_number
    for payment in invoice.payments:
        payment.invoice_id = None
    await db.delete(invoice)
    await reconciliation.commit_invoice(db, invoice_id)
    logger.info("Deleted invoice %s", number)


# ----- Items -----
async def add_item(
    db: AsyncSession,
    invoice_id: UUID,
    payload: InvoiceItemCreate,
    today: Optional[date] = None,
) -> InvoiceDetailResponse:
    invoice = await _load_or_404(db, invoice_id)
    await _validate_fee_type(db, payload.fee_type_id)
    invoice.items.append(
        InvoiceItem(
            fee_type_id=payload.fee_type_id,
            description=payload.description.strip(),
            amount=payload.amount,
            position=len(invoice.items),
        )
    )
    return _to_detail(await _save(db, invoice, today))


def _find_item(invoice: Invoice, item_id: UUID) -> InvoiceItem:
    for item in invoice.items:
        if item.id == item_id:
            return item
    raise NotFoundError("Invoice item not found")


async def update_item(
    db: AsyncSession,
    invoice_id: UUID,
    item_id: UUID,
    payload: InvoiceItemUpdate,
    today: Optional[date] = None,
) -> InvoiceDetailResponse:
    invoice = await _load_or_404(db, invoice_id)
    item = _find_item(invoice, item_id)
    if payload.fee_type_id is not None:
        await _validate_fee_type(db, payload.fee_type_id)
        item.fee_type_id = payload.fee_type_id
    if payload.description is not None:
        item.description = payload.description.strip()
    if payload.amount is not None:
        item.amount = payload.amount
    return _to_detail(await _save(db, invoice, today))


async def remove_item(
    db: AsyncSession,
    invoice_id: UUID,
    item_id: UUID,
    today: Optional[date] = None,
) -> InvoiceDetailResponse:
    invoice = await _load_or_404(db, invoice_id)
    item = _find_item(invoice, item_id)
    if len(invoice.items) == 1:
        raise StateConflictError("An invoice must keep at least one item")
    invoice.items.remove(item)
    _renumber(invoice)
    return _to_detail(await _save(db, invoice, today))


# ----- Waivers -----
async def waive_invoice(
    db: AsyncSession,
    invoice_id: UUID,
    reason: Optional[str] = None,
    today: Optional[date] = None,
) -> InvoiceDetailResponse:
    invoice = await _load_or_404(db, invoice_id)
    if invoice.is_waived:
        raise StateConflictError("Invoice is already waived")
    invoice.is_waived = True
    if reason:
        invoice.notes = clean(f"{invoice.notes or ''}\nWaived: {reason}")
    invoice = await _save(db, invoice, today)
    logger.info("Waived invoice %s (balance %s)", invoice.invoice_number, invoice.balance_due)
    return _to_detail(invoice)


async def unwaive_invoice(db: AsyncSession, invoice_id: UUID, today: Optional[date] = None) -> InvoiceDetailResponse:
    invoice = await _load_or_404(db, invoice_id)
    if not invoice.is_waived:
        raise StateConflictError("Invoice is not waived")
    invoice.is_waived = False
    invoice = await _save(db, invoice, today)
    logger.info("Cleared waiver on invoice %s (status now %s)", invoice.invoice_number, invoice.status)
    return _to_detail(invoice)


# ----- Payments -----
async def list_payments(db: AsyncSession, caller: CurrentUser, invoice_id: UUID) -> List[PaymentResponse]:
    invoice = await _load_or_404(db, invoice_id)
    ensure_allowed(caller, READ, invoice)
    return [PaymentResponse.model_validate(p) for p in invoice.payments]


async def _pay(
    db: AsyncSession,
    invoice: Invoice,
    amount: Decimal,
    method: str,
    payment_date: Optional[date],
    status: str,
    transaction_id: Optional[str],
    notes: Optional[str],
    recorded_by: Optional[UUID],
    today: Optional[date],
) -> InvoiceDetailResponse:
    """Balance check, then the reconciliation engine. Shared by admin entry and parent self-service."""
    if reconciliation.reconcile(invoice, today):
        invoice = await _save(db, invoice, today)
    if invoice.is_waived or invoice.status in SETTLED_INVOICE_STATUSES:
        raise StateConflictError(f"Invoice {invoice.invoice_number} is already {invoice.status}")
    if amount > invoice.balance_due:
        raise ValidationError("Payment amount cannot exceed remaining balance", field="amount")
    invoice_id = invoice.id
    recorded = await reconciliation.record_payment(
        db,
        invoice_id,
        amount,
        method,
        payment_date=payment_date,
        notes=clean(notes),
        transaction_id=clean(transaction_id),
        status=status,
        recorded_by=recorded_by,
        today=today,
    )
    if not recorded:
        raise StateConflictError(f"Invoice {invoice.invoice_number} can no longer accept payments; reload and retry.")
    return _to_detail(await _load_or_404(db, invoice_id))


async def record_invoice_payment(
    db: AsyncSession,
    caller: CurrentUser,
    invoice_id: UUID,
    payload: PaymentCreate,
    today: Optional[date] = None,
) -> InvoiceDetailResponse:
    invoice = await _load_or_404(db, invoice_id)
    return await _pay(
        db,
        invoice,
        payload.amount,
        payload.payment_method.value,
        payload.payment_date,
        payload.status.value,
        payload.transaction_id,
        payload.notes,
        caller.id,
        today,
    )


async def update_payment_status(
    db: AsyncSession,
    payment_id: UUID,
    status: PaymentStatus,
    today: Optional[date] = None,
) -> PaymentResponse:
    """Change a payment's status (e.g. Refunded) and reconcile its invoice."""
    payment = await get_or_404(db, Payment, payment_id, "Payment")
    old_status = payment.status
    invoice = None
    if payment.invoice_id is not None:
        invoice = await _load_or_404(db, payment.invoice_id)
        reconciliation.reconcile(invoice, today)
    counted = reconciliation.COUNTED_PAYMENT_STATUSES
    if invoice is not None and status.value in counted and old_status not in counted:
        # A payment starting to count is a new payment as far as the balance goes
        if invoice.is_waived or invoice.status in SETTLED_INVOICE_STATUSES:
            raise StateConflictError(f"Invoice {invoice.invoice_number} is already {invoice.status}")
        if to_decimal(payment.amount) > invoice.balance_due:
            raise ValidationError("Payment amount cannot exceed remaining balance", field="amount")
    payment.status = status.value
    if invoice is not None:
        reconciliation.reconcile(invoice, today)
    await reconciliation.commit_invoice(db, payment.invoice_id)
    await db.refresh(payment)
    logger.info("Payment %s status %s -> %s", payment_id, old_status, status.value)
    return PaymentResponse.model_validate(payment)


# ----- Parent self-service -----
def _require_parent(caller: CurrentUser) -> UUID:
    if caller.role != UserRole.PARENT.value or caller.parent_id is None:
        raise PermissionDeniedError("Only parents can use self-service payments")
    return caller.parent_id


async def list_parent_invoices(
    db: AsyncSession,
    caller: CurrentUser,
    status: Optional[InvoiceStatus] = None,
) -> List[InvoiceResponse]:
    _require_parent(caller)
    return await list_invoices(db, caller, status=status)


async def pay_invoice_as_parent(
    db: AsyncSession,
    caller: CurrentUser,
    invoice_id: UUID,
    payload: ParentPaymentCreate,
    today: Optional[date] = None,
) -> InvoiceDetailResponse:
    _require_parent(caller)
    invoice = await _load_or_404(db, invoice_id)
    ensure_allowed(caller, CREATE, invoice, module="payments")
    return await _pay(
        db,
        invoice,
        payload.amount,
        PaymentMethod.ONLINE_PARENT.value,
        None,
        PaymentStatus.COMPLETED.value,
        payload.transaction_id,
        payload.notes,
        caller.id,
        today,
    )


async def list_parent_payments(db: AsyncSession, caller: CurrentUser) -> List[PaymentResponse]:
    parent_id = _require_parent(caller)
    result = await db.execute(
        select(Payment).where(Payment.parent_id == parent_id).order_by(Payment.payment_date.desc())
    )
    return [PaymentResponse.model_validate(p) for p in result.scalars().all()]


# ----- Student -----
async def list_student_invoices(db: AsyncSession, caller: CurrentUser) -> List[InvoiceResponse]:
    if caller.student_id is None:
        raise PermissionDeniedError("Only students have their own invoices")
    return await list_invoices(db, caller, student_id=caller.student_id)
