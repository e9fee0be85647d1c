"""
School (tenant) scoping helpers used by every service function.

Service functions receive school_id as a mandatory argument and fetch rows
through these helpers, so a row owned by another school is indistinguishable
from a missing one.
"""
import logging
from typing import Iterable, Optional, Sequence, Type, TypeVar

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from gradebook.core.exceptions import NotFoundOrForbidden, ServiceError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


def scoped_select(model: Type[ModelT], school_id: int, *criteria) -> Select:
    """SELECT model WHERE school_id = :school_id AND <criteria>."""
    return select(model).where(model.school_id == school_id, *criteria)


async def get_owned_or_404(
    db: AsyncSession,
    model: Type[ModelT],
    school_id: int,
    entity_id: int,
    entity_name: str,
    for_update: bool = False,
) -> ModelT:
    stmt = scoped_select(model, school_id, model.id == entity_id)
    if for_update:
        stmt = stmt.with_for_update()
    obj = (await db.execute(stmt)).scalar_one_or_none()
    if obj is None:
        raise NotFoundOrForbidden(entity_name)
    return obj


async def get_all_owned_or_404(
    db: AsyncSession,
    model: Type[ModelT],
    school_id: int,
    entity_ids: Iterable[int],
    entity_name: str,
) -> Sequence[ModelT]:
    """Fetch every id or fail without revealing which id was foreign or missing."""
    wanted = set(entity_ids)
    if not wanted:
        return []
    rows = (
        await db.execute(scoped_select(model, school_id, model.id.in_(wanted)).order_by(model.id))
    ).scalars().all()
    if len(rows) != len(wanted):
        raise NotFoundOrForbidden(entity_name)
    return rows


def reject_foreign_school_id(payload_school_id: Optional[int], school_id: int) -> None:
    """Write payloads may echo school_id; it must match the resolved one."""
    if payload_school_id is not None and payload_school_id != school_id:
        logger.warning("Rejected write carrying a foreign school_id for school %s", school_id)
        raise ServiceError("Access denied", status.HTTP_403_FORBIDDEN)
