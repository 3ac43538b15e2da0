"""Parent self-service: own invoices, online payment, payment history."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.rbac import require_roles
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import InvoiceStatus, UserRole
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

from .schemas import InvoiceDetailResponse, InvoiceResponse, ParentPaymentCreate, PaymentResponse
from . import service

router = APIRouter(prefix="/api/v1/parent", tags=["parent"])


@router.get("/invoices", response_model=List[InvoiceResponse])
async def list_my_invoices(
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.PARENT)),
) -> List[InvoiceResponse]:
    try:
        return await service.list_parent_invoices(db, current_user, status=status_filter)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/invoices/{invoice_id}/payments",
    response_model=InvoiceDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def pay_invoice(
    invoice_id: UUID,
    payload: ParentPaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.PARENT)),
) -> InvoiceDetailResponse:
    try:
        return await service.pay_invoice_as_parent(db, current_user, invoice_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/payments", response_model=List[PaymentResponse])
async def list_my_payments(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.PARENT)),
) -> List[PaymentResponse]:
    try:
        return await service.list_parent_payments(db, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
