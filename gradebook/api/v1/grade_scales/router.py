from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.auth.dependencies import get_current_user
from gradebook.auth.rbac import check_permission
from gradebook.auth.schemas import CurrentUser
from gradebook.core.exceptions import ServiceError
from gradebook.db.session import get_db

from . import service
from .schemas import GradeScaleCreate, GradeScaleResponse, GradeScaleUpdate

router = APIRouter(
    prefix="/api/v1/grade-scales",
    tags=["grade-scales"],
    dependencies=[Depends(get_current_user)],
)


@router.get(
    "",
    response_model=List[GradeScaleResponse],
    dependencies=[Depends(check_permission("grade_scales", "read"))],
)
async def list_grade_scales(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[GradeScaleResponse]:
    return await service.list_grade_scales(db, current_user.school_id)


@router.post(
    "",
    response_model=GradeScaleResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("grade_scales", "manage"))],
)
async def create_grade_scale(
    payload: GradeScaleCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> GradeScaleResponse:
    try:
        return await service.create_grade_scale(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/{scale_id}",
    response_model=GradeScaleResponse,
    dependencies=[Depends(check_permission("grade_scales", "read"))],
)
async def get_grade_scale(
    scale_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> GradeScaleResponse:
    try:
        return await service.get_grade_scale(db, current_user.school_id, scale_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.patch(
    "/{scale_id}",
    response_model=GradeScaleResponse,
    dependencies=[Depends(check_permission("grade_scales", "manage"))],
)
async def update_grade_scale(
    scale_id: int,
    payload: GradeScaleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> GradeScaleResponse:
    try:
        return await service.update_grade_scale(db, current_user.school_id, scale_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post(
    "/{scale_id}/set-default",
    response_model=GradeScaleResponse,
    dependencies=[Depends(check_permission("grade_scales", "manage"))],
)
async def set_default_grade_scale(
    scale_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> GradeScaleResponse:
    """Promote this scale; the previous default is demoted."""
    try:
        return await service.set_default_grade_scale(db, current_user.school_id, scale_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.delete(
    "/{scale_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("grade_scales", "manage"))],
)
async def delete_grade_scale(
    scale_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        await service.delete_grade_scale(db, current_user.school_id, scale_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
