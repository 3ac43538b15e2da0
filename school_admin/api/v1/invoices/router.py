"""Invoices router: admin invoice management, payments, and the student's own invoices."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.dependencies import get_current_user
from school_admin.auth.rbac import check_permission, require_admin, require_roles
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import InvoiceStatus, UserRole
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

from .schemas import (
    InvoiceBalance,
    InvoiceCreate,
    InvoiceDetailResponse,
    InvoiceItemCreate,
    InvoiceItemUpdate,
    InvoiceResponse,
    InvoiceUpdate,
    PaymentCreate,
    PaymentResponse,
    PaymentStatusUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/invoices", tags=["invoices"])
payments_router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post(
    "",
    response_model=InvoiceDetailResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_invoice(
    payload: InvoiceCreate,
    db: AsyncSession = Depends(get_db),
) -> InvoiceDetailResponse:
    try:
        return await service.create_invoice(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[InvoiceResponse],
    dependencies=[Depends(check_permission("invoices", "read"))],
)
async def list_invoices(
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    student_id: Optional[UUID] = Query(None),
    parent_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[InvoiceResponse]:
    try:
        return await service.list_invoices(
            db, current_user, status=status_filter, student_id=student_id, parent_id=parent_id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/mine", response_model=List[InvoiceResponse])
async def list_my_invoices(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.STUDENT)),
) -> List[InvoiceResponse]:
    try:
        return await service.list_student_invoices(db, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{invoice_id}",
    response_model=InvoiceDetailResponse,
    dependencies=[Depends(check_permission("invoices", "read"))],
)
async def get_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> InvoiceDetailResponse:
    try:
        return await service.get_invoice(db, current_user, invoice_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{invoice_id}/balance",
    response_model=InvoiceBalance,
    dependencies=[Depends(check_permission("invoices", "read"))],
)
async def get_invoice_balance(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> InvoiceBalance:
    try:
        return await service.get_invoice_balance(db, current_user, invoice_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{invoice_id}",
    response_model=InvoiceDetailResponse,
    dependencies=[Depends(require_admin)],
)
async def update_invoice(
    invoice_id: UUID,
    payload: InvoiceUpdate,
    db: AsyncSession = Depends(get_db),
) -> InvoiceDetailResponse:
    try:
        return await service.update_invoice(db, invoice_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{invoice_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
async def delete_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_invoice(db, invoice_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Items ---
@router.post(
    "/{invoice_id}/items",
    response_model=InvoiceDetailResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def add_item(
    invoice_id: UUID,
    payload: InvoiceItemCreate,
    db: AsyncSession = Depends(get_db),
) -> InvoiceDetailResponse:
    try:
        return await service.add_item(db, invoice_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{invoice_id}/items/{item_id}",
    response_model=InvoiceDetailResponse,
    dependencies=[Depends(require_admin)],
)
async def update_item(
    invoice_id: UUID,
    item_id: UUID,
    payload: InvoiceItemUpdate,
    db: AsyncSession = Depends(get_db),
) -> InvoiceDetailResponse:
    try:
        return await service.update_item(db, invoice_id, item_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{invoice_id}/items/{item_id}",
    response_model=InvoiceDetailResponse,
    dependencies=[Depends(require_admin)],
)
async def remove_item(
    invoice_id: UUID,
    item_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> InvoiceDetailResponse:
    try:
        return await service.remove_item(db, invoice_id, item_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Waivers ---
@router.post(
    "/{invoice_id}/waive",
    response_model=InvoiceDetailResponse,
    dependencies=[Depends(require_admin)],
)
async def waive_invoice(
    invoice_id: UUID,
    reason: Optional[str] = Body(None, embed=True, max_length=200),
    db: AsyncSession = Depends(get_db),
) -> InvoiceDetailResponse:
    try:
        return await service.waive_invoice(db, invoice_id, reason=reason)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{invoice_id}/unwaive",
    response_model=InvoiceDetailResponse,
    dependencies=[Depends(require_admin)],
)
async def unwaive_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> InvoiceDetailResponse:
    try:
        return await service.unwaive_invoice(db, invoice_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Payments ---
@router.get(
    "/{invoice_id}/payments",
    response_model=List[PaymentResponse],
    dependencies=[Depends(check_permission("invoices", "read"))],
)
async def list_payments(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[PaymentResponse]:
    try:
        return await service.list_payments(db, current_user, invoice_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{invoice_id}/payments",
    response_model=InvoiceDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_payment(
    invoice_id: UUID,
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> InvoiceDetailResponse:
    try:
        return await service.record_invoice_payment(db, current_user, invoice_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@payments_router.put("/{payment_id}/status", response_model=PaymentResponse)
async def update_payment_status(
    payment_id: UUID,
    payload: PaymentStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> PaymentResponse:
    try:
        return await service.update_payment_status(db, payment_id, payload.status)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
