from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.auth.dependencies import get_current_user
from gradebook.auth.rbac import check_permission
from gradebook.auth.schemas import CurrentUser
from gradebook.core.events import EventPublisher, get_event_publisher
from gradebook.core.exceptions import ServiceError
from gradebook.db.session import get_db

from . import service
from .schemas import (
    AssessmentComponentCreate,
    AssessmentComponentResponse,
    AssessmentCreate,
    AssessmentDetailResponse,
    AssessmentResponse,
    AssessmentUpdate,
    BulkDeleteRequest,
    BulkDeleteResponse,
    BulkPublishRequest,
    CopyToClassRequest,
    GradeDistributionResponse,
)

router = APIRouter(
    prefix="/api/v1/assessments",
    tags=["assessments"],
    dependencies=[Depends(get_current_user)],
)


@router.get(
    "",
    response_model=List[AssessmentResponse],
    dependencies=[Depends(check_permission("gradebook", "read"))],
)
async def list_assessments(
    class_name: str,
    section: str,
    subject_id: Optional[int] = None,
    term_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[AssessmentResponse]:
    """Assessments for one class/section, optionally narrowed to a subject and term."""
    return await service.list_assessments(db, current_user.school_id, class_name, section, subject_id, term_id)


@router.post(
    "",
    response_model=AssessmentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("gradebook", "create"))],
)
async def create_assessment(
    payload: AssessmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AssessmentResponse:
    try:
        return await service.create_assessment(db, current_user.school_id, current_user.id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post(
    "/bulk-delete",
    response_model=BulkDeleteResponse,
    dependencies=[Depends(check_permission("gradebook", "delete"))],
)
async def bulk_delete_assessments(
    payload: BulkDeleteRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> BulkDeleteResponse:
    """Delete every listed assessment or none of them."""
    try:
        return await service.bulk_delete_assessments(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post(
    "/bulk-publish",
    response_model=List[AssessmentResponse],
    dependencies=[Depends(check_permission("gradebook", "approve"))],
)
async def bulk_publish_assessments(
    payload: BulkPublishRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> List[AssessmentResponse]:
    try:
        return await service.bulk_publish_assessments(db, current_user.school_id, payload, publisher)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/{assessment_id}",
    response_model=AssessmentDetailResponse,
    dependencies=[Depends(check_permission("gradebook", "read"))],
)
async def get_assessment(
    assessment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AssessmentDetailResponse:
    try:
        return await service.get_assessment(db, current_user.school_id, assessment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.patch(
    "/{assessment_id}",
    response_model=AssessmentResponse,
    dependencies=[Depends(check_permission("gradebook", "update"))],
)
async def update_assessment(
    assessment_id: int,
    payload: AssessmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AssessmentResponse:
    try:
        return await service.update_assessment(db, current_user.school_id, assessment_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post(
    "/{assessment_id}/duplicate",
    response_model=AssessmentDetailResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("gradebook", "create"))],
)
async def duplicate_assessment(
    assessment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AssessmentDetailResponse:
    """Clone the definition (and components, not scores) within the same class/section."""
    try:
        return await service.duplicate_assessment(db, current_user.school_id, assessment_id, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post(
    "/{assessment_id}/copy-to-class",
    response_model=AssessmentDetailResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("gradebook", "create"))],
)
async def copy_assessment_to_class(
    assessment_id: int,
    payload: CopyToClassRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AssessmentDetailResponse:
    try:
        return await service.copy_assessment_to_class(
            db, current_user.school_id, assessment_id, current_user.id, payload
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/{assessment_id}/distribution",
    response_model=GradeDistributionResponse,
    dependencies=[Depends(check_permission("gradebook", "read"))],
)
async def get_grade_distribution(
    assessment_id: int,
    scale_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> GradeDistributionResponse:
    try:
        return await service.get_grade_distribution(db, current_user.school_id, assessment_id, scale_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/{assessment_id}/components",
    response_model=List[AssessmentComponentResponse],
    dependencies=[Depends(check_permission("gradebook", "read"))],
)
async def list_components(
    assessment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[AssessmentComponentResponse]:
    try:
        return await service.list_components(db, current_user.school_id, assessment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post(
    "/{assessment_id}/components",
    response_model=AssessmentComponentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("gradebook", "update"))],
)
async def create_component(
    assessment_id: int,
    payload: AssessmentComponentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AssessmentComponentResponse:
    try:
        return await service.create_component(db, current_user.school_id, assessment_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.delete(
    "/{assessment_id}/components/{component_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("gradebook", "update"))],
)
async def delete_component(
    assessment_id: int,
    component_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        await service.delete_component(db, current_user.school_id, assessment_id, component_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
