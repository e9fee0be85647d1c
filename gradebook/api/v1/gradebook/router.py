from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.auth.dependencies import get_current_user
from gradebook.auth.rbac import check_permission
from gradebook.auth.schemas import CurrentUser
from gradebook.core.exceptions import ServiceError
from gradebook.db.session import get_db

from . import service
from .schemas import FinalGradeResponse, GradebookGrid, StudentGradebookEntry, WeightedGradeResponse

router = APIRouter(
    prefix="/api/v1/gradebook",
    tags=["gradebook"],
    dependencies=[Depends(get_current_user), Depends(check_permission("gradebook", "read"))],
)


@router.get("/classes/grid", response_model=GradebookGrid)
async def get_class_grid(
    class_name: str,
    section: str,
    subject_id: Optional[int] = None,
    term_id: Optional[int] = None,
    scale_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> GradebookGrid:
    """Student x assessment grid for a class/section; also the source for exports."""
    try:
        return await service.get_class_grid(
            db, current_user.school_id, class_name, section, subject_id, term_id, scale_id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/students/{student_id}", response_model=List[StudentGradebookEntry])
async def get_student_gradebook(
    student_id: int,
    term_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[StudentGradebookEntry]:
    try:
        return await service.get_student_gradebook(db, current_user.school_id, student_id, term_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/students/{student_id}/subjects/{subject_id}/weighted", response_model=WeightedGradeResponse)
async def compute_weighted_grade(
    student_id: int,
    subject_id: int,
    term_id: Optional[int] = None,
    scale_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> WeightedGradeResponse:
    try:
        return await service.compute_weighted_grade(
            db, current_user.school_id, student_id, subject_id, term_id, scale_id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/students/{student_id}/subjects/{subject_id}/final", response_model=FinalGradeResponse)
async def get_final_grade(
    student_id: int,
    subject_id: int,
    term_id: Optional[int] = None,
    scale_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FinalGradeResponse:
    """Approved override wins over the computed grade; a pending one is only reported."""
    try:
        return await service.get_final_grade(db, current_user.school_id, student_id, subject_id, term_id, scale_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
