from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.auth.dependencies import get_current_user
from gradebook.auth.permissions import GRADEBOOK
from gradebook.auth.rbac import check_permission, require_grade_manager
from gradebook.auth.schemas import CurrentUser
from gradebook.core.enums import UserRole
from gradebook.core.events import EventPublisher, get_event_publisher
from gradebook.core.exceptions import ServiceError
from gradebook.db.session import get_db

from . import service
from .schemas import GradeOverrideAuditResponse, GradeOverrideCreate, GradeOverrideDecision, GradeOverrideResponse

router = APIRouter(
    prefix="/api/v1/grade-overrides",
    tags=["grade-overrides"],
    dependencies=[Depends(get_current_user)],
)


def _can_manage(current_user: CurrentUser) -> bool:
    if current_user.role == UserRole.SUPER_ADMIN.value:
        return True
    return bool((current_user.permissions or {}).get(GRADEBOOK, {}).get("approve"))


@router.post(
    "",
    response_model=GradeOverrideResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("gradebook", "update"))],
)
async def request_override(
    payload: GradeOverrideCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> GradeOverrideResponse:
    """Request a final-grade override. It stays pending until a grade manager approves it."""
    try:
        return await service.request_override(db, current_user.school_id, current_user.id, current_user.role, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/pending",
    response_model=List[GradeOverrideResponse],
    dependencies=[Depends(require_grade_manager)],
)
async def list_pending_overrides(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[GradeOverrideResponse]:
    return await service.list_pending_overrides(db, current_user.school_id)


@router.get(
    "/students/{student_id}",
    response_model=List[GradeOverrideResponse],
    dependencies=[Depends(check_permission("gradebook", "read"))],
)
async def list_overrides_for_student(
    student_id: int,
    term_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[GradeOverrideResponse]:
    try:
        return await service.list_overrides_for_student(db, current_user.school_id, student_id, term_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post(
    "/{override_id}/approve",
    response_model=GradeOverrideResponse,
    dependencies=[Depends(require_grade_manager)],
)
async def approve_override(
    override_id: int,
    payload: Optional[GradeOverrideDecision] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> GradeOverrideResponse:
    try:
        return await service.approve_override(
            db,
            current_user.school_id,
            override_id,
            current_user.id,
            current_user.role,
            publisher,
            remarks=payload.remarks if payload else None,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post(
    "/{override_id}/reject",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("gradebook", "update"))],
)
async def reject_override(
    override_id: int,
    payload: Optional[GradeOverrideDecision] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    """Reject (delete) an override. The requester may withdraw their own pending request."""
    try:
        await service.reject_override(
            db,
            current_user.school_id,
            override_id,
            current_user.id,
            current_user.role,
            _can_manage(current_user),
            remarks=payload.remarks if payload else None,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/{override_id}/audit",
    response_model=List[GradeOverrideAuditResponse],
    dependencies=[Depends(check_permission("gradebook", "audit"))],
)
async def get_override_audit_trail(
    override_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[GradeOverrideAuditResponse]:
    try:
        return await service.get_override_audit_trail(db, current_user.school_id, override_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
