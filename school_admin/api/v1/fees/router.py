"""Fees router: fee types, class fees, student fees, suggested invoice items."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.rbac import check_permission
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

from .schemas import (
    ClassFeeCreate,
    ClassFeeResponse,
    ClassFeeUpdate,
    FeeTypeCreate,
    FeeTypeResponse,
    FeeTypeUpdate,
    StudentFeeCreate,
    StudentFeeResponse,
    StudentFeeUpdate,
    SuggestedInvoiceItem,
)
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


# --- Fee Types ---
@router.post(
    "/types",
    response_model=FeeTypeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_fee_type(
    payload: FeeTypeCreate,
    db: AsyncSession = Depends(get_db),
) -> FeeTypeResponse:
    try:
        return await service.create_fee_type(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/types",
    response_model=List[FeeTypeResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_fee_types(db: AsyncSession = Depends(get_db)) -> List[FeeTypeResponse]:
    return await service.list_fee_types(db)


@router.get(
    "/types/{fee_type_id}",
    response_model=FeeTypeResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_fee_type(
    fee_type_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> FeeTypeResponse:
    try:
        return await service.get_fee_type(db, fee_type_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/types/{fee_type_id}",
    response_model=FeeTypeResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_fee_type(
    fee_type_id: UUID,
    payload: FeeTypeUpdate,
    db: AsyncSession = Depends(get_db),
) -> FeeTypeResponse:
    try:
        return await service.update_fee_type(db, fee_type_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/types/{fee_type_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("fees", "delete"))],
)
async def delete_fee_type(
    fee_type_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_fee_type(db, fee_type_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Class Fees ---
@router.post(
    "/class",
    response_model=ClassFeeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_class_fee(
    payload: ClassFeeCreate,
    db: AsyncSession = Depends(get_db),
) -> ClassFeeResponse:
    try:
        return await service.create_class_fee(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/class",
    response_model=List[ClassFeeResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_class_fees(
    class_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[ClassFeeResponse]:
    return await service.list_class_fees(db, class_id=class_id)


@router.get(
    "/class/{class_fee_id}",
    response_model=ClassFeeResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_class_fee(
    class_fee_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ClassFeeResponse:
    try:
        return await service.get_class_fee(db, class_fee_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/class/{class_fee_id}",
    response_model=ClassFeeResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_class_fee(
    class_fee_id: UUID,
    payload: ClassFeeUpdate,
    db: AsyncSession = Depends(get_db),
) -> ClassFeeResponse:
    try:
        return await service.update_class_fee(db, class_fee_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/class/{class_fee_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("fees", "delete"))],
)
async def delete_class_fee(
    class_fee_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_class_fee(db, class_fee_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Student Fees ---
@router.post(
    "/student",
    response_model=StudentFeeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_student_fee(
    payload: StudentFeeCreate,
    db: AsyncSession = Depends(get_db),
) -> StudentFeeResponse:
    try:
        return await service.create_student_fee(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/student",
    response_model=List[StudentFeeResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_student_fees(
    student_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[StudentFeeResponse]:
    return await service.list_student_fees(db, student_id=student_id)


@router.get(
    "/student/{student_fee_id}",
    response_model=StudentFeeResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_student_fee(
    student_fee_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StudentFeeResponse:
    try:
        return await service.get_student_fee(db, student_fee_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/student/{student_fee_id}",
    response_model=StudentFeeResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_student_fee(
    student_fee_id: UUID,
    payload: StudentFeeUpdate,
    db: AsyncSession = Depends(get_db),
) -> StudentFeeResponse:
    try:
        return await service.update_student_fee(db, student_fee_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/student/{student_fee_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("fees", "delete"))],
)
async def delete_student_fee(
    student_fee_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_student_fee(db, student_fee_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/students/{student_id}/invoice-items",
    response_model=List[SuggestedInvoiceItem],
    dependencies=[Depends(check_permission("invoices", "create"))],
)
async def build_invoice_items_for_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[SuggestedInvoiceItem]:
    try:
        return await service.build_invoice_items_for_student(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
