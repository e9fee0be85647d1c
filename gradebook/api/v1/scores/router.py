from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.auth.dependencies import get_current_user
from gradebook.auth.rbac import check_permission
from gradebook.auth.schemas import CurrentUser
from gradebook.core.exceptions import ServiceError
from gradebook.db.session import get_db

from . import service
from .schemas import BulkScoreRecord, BulkScoreResponse, GradeHistoryResponse, ScoreRecord, StudentScoreResponse

router = APIRouter(
    prefix="/api/v1/scores",
    tags=["scores"],
    dependencies=[Depends(get_current_user)],
)


@router.put(
    "",
    response_model=StudentScoreResponse,
    dependencies=[Depends(check_permission("gradebook", "update"))],
)
async def record_score(
    payload: ScoreRecord,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentScoreResponse:
    """Create or update the score for one (student, assessment). Changes are appended to grade history."""
    try:
        return await service.record_score(db, current_user.school_id, current_user.id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put(
    "/bulk",
    response_model=BulkScoreResponse,
    dependencies=[Depends(check_permission("gradebook", "update"))],
)
async def record_scores_bulk(
    payload: BulkScoreRecord,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> BulkScoreResponse:
    """All-or-nothing batch entry."""
    try:
        return await service.record_scores_bulk(db, current_user.school_id, current_user.id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/assessments/{assessment_id}",
    response_model=List[StudentScoreResponse],
    dependencies=[Depends(check_permission("gradebook", "read"))],
)
async def list_scores_for_assessment(
    assessment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[StudentScoreResponse]:
    try:
        return await service.list_scores_for_assessment(db, current_user.school_id, assessment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/history",
    response_model=List[GradeHistoryResponse],
    dependencies=[Depends(check_permission("gradebook", "read"))],
)
async def get_grade_history(
    student_id: int,
    assessment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[GradeHistoryResponse]:
    try:
        return await service.get_grade_history(db, current_user.school_id, student_id, assessment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
