"""Fee catalog and fee assignment to classes and students."""

import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.core.models import (
    ClassFee,
    FeeType,
    InvoiceItem,
    SchoolClass,
    Student,
    StudentFee,
)
from school_admin.core.services import (
    clean,
    commit_unique,
    ensure_unique,
    ensure_unused,
    get_or_404,
    id_select,
    to_decimal,
)

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

logger = logging.getLogger(__name__)

DUPLICATE_FEE_TYPE = "A fee type with this name already exists."
DUPLICATE_CLASS_FEE = "This fee type is already set for the class."
DUPLICATE_STUDENT_FEE = "This fee type is already assigned to the student."


# --- Fee types ---
async def create_fee_type(db: AsyncSession, payload: FeeTypeCreate) -> FeeTypeResponse:
    name = payload.name.strip()
    await ensure_unique(db, id_select(FeeType, FeeType.name == name), DUPLICATE_FEE_TYPE, field="name")
    fee_type = FeeType(name=name, description=clean(payload.description), is_recurring=payload.is_recurring)
    db.add(fee_type)
    await commit_unique(db, DUPLICATE_FEE_TYPE, field="name")
    await db.refresh(fee_type)
    return FeeTypeResponse.model_validate(fee_type)


async def list_fee_types(db: AsyncSession) -> List[FeeTypeResponse]:
    result = await db.execute(select(FeeType).order_by(FeeType.name))
    return [FeeTypeResponse.model_validate(f) for f in result.scalars().all()]


async def get_fee_type(db: AsyncSession, fee_type_id: UUID) -> FeeTypeResponse:
    return FeeTypeResponse.model_validate(await get_or_404(db, FeeType, fee_type_id, "Fee type"))


async def update_fee_type(db: AsyncSession, fee_type_id: UUID, payload: FeeTypeUpdate) -> FeeTypeResponse:
    fee_type = await get_or_404(db, FeeType, fee_type_id, "Fee type")
    if payload.name is not None:
        name = payload.name.strip()
        await ensure_unique(
            db, id_select(FeeType, FeeType.name == name), DUPLICATE_FEE_TYPE,
            field="name", exclude=(FeeType.id, fee_type_id),
        )
        fee_type.name = name
    if payload.description is not None:
        fee_type.description = clean(payload.description)
    if payload.is_recurring is not None:
        fee_type.is_recurring = payload.is_recurring
    await commit_unique(db, DUPLICATE_FEE_TYPE, field="name")
    await db.refresh(fee_type)
    return FeeTypeResponse.model_validate(fee_type)


async def delete_fee_type(db: AsyncSession, fee_type_id: UUID) -> None:
    fee_type = await get_or_404(db, FeeType, fee_type_id, "Fee type")
    await ensure_unused(
        db,
        "fee type",
        [
            ("class fees", id_select(ClassFee, ClassFee.fee_type_id == fee_type_id)),
            ("student fees", id_select(StudentFee, StudentFee.fee_type_id == fee_type_id)),
            ("invoice items", id_select(InvoiceItem, InvoiceItem.fee_type_id == fee_type_id)),
        ],
    )
    await db.delete(fee_type)
    await db.commit()
    logger.info("Deleted fee type %s", fee_type_id)


# --- Class fees ---
async def create_class_fee(db: AsyncSession, payload: ClassFeeCreate) -> ClassFeeResponse:
    await get_or_404(db, SchoolClass, payload.class_id, "Class")
    await get_or_404(db, FeeType, payload.fee_type_id, "Fee type")
    await ensure_unique(
        db,
        id_select(ClassFee, ClassFee.class_id == payload.class_id, ClassFee.fee_type_id == payload.fee_type_id),
        DUPLICATE_CLASS_FEE,
        field="fee_type_id",
    )
    class_fee = ClassFee(class_id=payload.class_id, fee_type_id=payload.fee_type_id, amount=payload.amount)
    if payload.effective_date is not None:
        class_fee.effective_date = payload.effective_date
    db.add(class_fee)
    await commit_unique(db, DUPLICATE_CLASS_FEE, field="fee_type_id")
    await db.refresh(class_fee)
    return ClassFeeResponse.model_validate(class_fee)


async def list_class_fees(db: AsyncSession, class_id: Optional[UUID] = None) -> List[ClassFeeResponse]:
    stmt = select(ClassFee)
    if class_id is not None:
        stmt = stmt.where(ClassFee.class_id == class_id)
    result = await db.execute(stmt.order_by(ClassFee.effective_date.desc()))
    return [ClassFeeResponse.model_validate(c) for c in result.scalars().all()]


async def get_class_fee(db: AsyncSession, class_fee_id: UUID) -> ClassFeeResponse:
    return ClassFeeResponse.model_validate(await get_or_404(db, ClassFee, class_fee_id, "Class fee"))


async def update_class_fee(db: AsyncSession, class_fee_id: UUID, payload: ClassFeeUpdate) -> ClassFeeResponse:
    class_fee = await get_or_404(db, ClassFee, class_fee_id, "Class fee")
    if payload.amount is not None:
        class_fee.amount = payload.amount
    if payload.effective_date is not None:
        class_fee.effective_date = payload.effective_date
    await db.commit()
    await db.refresh(class_fee)
    return ClassFeeResponse.model_validate(class_fee)


async def delete_class_fee(db: AsyncSession, class_fee_id: UUID) -> None:
    class_fee = await get_or_404(db, ClassFee, class_fee_id, "Class fee")
    await db.delete(class_fee)
    await db.commit()


# --- Student fees ---
async def create_student_fee(db: AsyncSession, payload: StudentFeeCreate) -> StudentFeeResponse:
    await get_or_404(db, Student, payload.student_id, "Student")
    await get_or_404(db, FeeType, payload.fee_type_id, "Fee type")
    await ensure_unique(
        db,
        id_select(StudentFee, StudentFee.student_id == payload.student_id, StudentFee.fee_type_id == payload.fee_type_id),
        DUPLICATE_STUDENT_FEE,
        field="fee_type_id",
    )
    student_fee = StudentFee(
        student_id=payload.student_id,
        fee_type_id=payload.fee_type_id,
        amount=payload.amount,
        due_date=payload.due_date,
        notes=clean(payload.notes),
    )
    db.add(student_fee)
    await commit_unique(db, DUPLICATE_STUDENT_FEE, field="fee_type_id")
    await db.refresh(student_fee)
    return StudentFeeResponse.model_validate(student_fee)


async def list_student_fees(db: AsyncSession, student_id: Optional[UUID] = None) -> List[StudentFeeResponse]:
    stmt = select(StudentFee)
    if student_id is not None:
        stmt = stmt.where(StudentFee.student_id == student_id)
    result = await db.execute(stmt.order_by(StudentFee.created_at.desc()))
    return [StudentFeeResponse.model_validate(s) for s in result.scalars().all()]


async def get_student_fee(db: AsyncSession, student_fee_id: UUID) -> StudentFeeResponse:
    return StudentFeeResponse.model_validate(await get_or_404(db, StudentFee, student_fee_id, "Student fee"))


async def update_student_fee(
    db: AsyncSession,
    student_fee_id: UUID,
    payload: StudentFeeUpdate,
) -> StudentFeeResponse:
    student_fee = await get_or_404(db, StudentFee, student_fee_id, "Student fee")
    if payload.amount is not None:
        student_fee.amount = payload.amount
    if payload.due_date is not None:
        student_fee.due_date = payload.due_date
    if payload.status is not None:
        student_fee.status = payload.status.strip()
    if payload.notes is not None:
        student_fee.notes = clean(payload.notes)
    await db.commit()
    await db.refresh(student_fee)
    return StudentFeeResponse.model_validate(student_fee)


async def delete_student_fee(db: AsyncSession, student_fee_id: UUID) -> None:
    student_fee = await get_or_404(db, StudentFee, student_fee_id, "Student fee")
    await db.delete(student_fee)
    await db.commit()


async def build_invoice_items_for_student(db: AsyncSession, student_id: UUID) -> List[SuggestedInvoiceItem]:
    """
    Suggested invoice lines for a student: the class fees of the student's
    class, with any student-specific fee of the same type taking precedence.
    """
    student = await get_or_404(db, Student, student_id, "Student")
    fee_names: Dict[UUID, str] = {
        f.id: f.name for f in (await db.execute(select(FeeType))).scalars().all()
    }
    items: Dict[UUID, SuggestedInvoiceItem] = {}
    if student.class_id is not None:
        class_fees = await db.execute(select(ClassFee).where(ClassFee.class_id == student.class_id))
        for cf in class_fees.scalars().all():
            items[cf.fee_type_id] = SuggestedInvoiceItem(
                fee_type_id=cf.fee_type_id,
                description=fee_names.get(cf.fee_type_id, "Fee"),
                amount=to_decimal(cf.amount),
                source="class",
            )
    student_fees = await db.execute(select(StudentFee).where(StudentFee.student_id == student_id))
    for sf in student_fees.scalars().all():
        items[sf.fee_type_id] = SuggestedInvoiceItem(
            fee_type_id=sf.fee_type_id,
            description=fee_names.get(sf.fee_type_id, "Fee"),
            amount=to_decimal(sf.amount),
            source="student",
        )
    return sorted(items.values(), key=lambda i: i.description)
