"""Helpers shared by the CRUD services: lookups, uniqueness and in-use checks, commits."""

import logging
from decimal import Decimal
from typing import Iterable, Optional, Tuple, Type, TypeVar
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.core.exceptions import NotFoundError, ReferentialIntegrityError, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


def to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def clean(val: Optional[str]) -> Optional[str]:
    """Strip a free-text field; blank becomes None."""
    if val is None:
        return None
    return val.strip() or None


async def get_or_404(db: AsyncSession, model: Type[ModelT], obj_id: UUID, label: str) -> ModelT:
    obj = await db.get(model, obj_id)
    if obj is None:
        raise NotFoundError(f"{label} not found")
    return obj


async def exists(db: AsyncSession, stmt: Select) -> bool:
    return (await db.execute(stmt.limit(1))).first() is not None


async def ensure_unique(
    db: AsyncSession,
    stmt: Select,
    message: str,
    field: Optional[str] = None,
    exclude: Optional[Tuple[object, UUID]] = None,
) -> None:
    """Raise ValidationError when `stmt` matches a row. `exclude` is (id column, own id) for updates."""
    if exclude is not None:
        column, own_id = exclude
        stmt = stmt.where(column != own_id)
    if await exists(db, stmt):
        raise ValidationError(message, field=field)


async def ensure_unused(db: AsyncSession, label: str, dependents: Iterable[Tuple[str, Select]]) -> None:
    """Refuse a delete while any dependent query returns a row."""
    in_use = [name for name, stmt in dependents if await exists(db, stmt)]
    if in_use:
        logger.warning("Refused to delete %s: still referenced by %s", label, ", ".join(in_use))
        raise ReferentialIntegrityError(
            f"Cannot delete {label}: still in use by {', '.join(in_use)}"
        )


async def commit_unique(db: AsyncSession, message: str, field: Optional[str] = None) -> None:
    """Commit; a unique-constraint race that slipped past the pre-checks becomes a ValidationError."""
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationError(message, field=field)


def id_select(model, *criteria) -> Select:
    return select(model.id).where(*criteria)
