from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.auth.dependencies import get_current_user
from gradebook.auth.rbac import check_permission
from gradebook.auth.schemas import CurrentUser
from gradebook.core.exceptions import ServiceError
from gradebook.db.session import get_db

from . import service
from .schemas import SubjectCreate, SubjectResponse

router = APIRouter(
    prefix="/api/v1/subjects",
    tags=["subjects"],
    dependencies=[Depends(get_current_user)],
)


@router.get(
    "",
    response_model=List[SubjectResponse],
    dependencies=[Depends(check_permission("gradebook", "read"))],
)
async def list_subjects(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[SubjectResponse]:
    return await service.list_subjects(db, current_user.school_id)


@router.post(
    "",
    response_model=SubjectResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("grade_scales", "manage"))],
)
async def create_subject(
    payload: SubjectCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> SubjectResponse:
    """Create a subject for the caller's school."""
    try:
        return await service.create_subject(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
