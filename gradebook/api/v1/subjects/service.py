from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.core.exceptions import ConflictError
from gradebook.core.models import Subject
from gradebook.core.tenancy import scoped_select

from .schemas import SubjectCreate, SubjectResponse


async def list_subjects(db: AsyncSession, school_id: int) -> List[SubjectResponse]:
    result = await db.execute(scoped_select(Subject, school_id).order_by(Subject.name))
    return [SubjectResponse.model_validate(s) for s in result.scalars().all()]


async def create_subject(db: AsyncSession, school_id: int, payload: SubjectCreate) -> SubjectResponse:
    subject = Subject(school_id=school_id, name=payload.name, name_bn=payload.name_bn, code=payload.code)
    db.add(subject)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Subject code '{payload.code}' already exists")
    await db.refresh(subject)
    return SubjectResponse.model_validate(subject)
