"""Grade override workflow: request (pending) -> approve; reject deletes. Every step is audited."""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.core.enums import OverrideAuditAction, OverrideStatus
from gradebook.core.events import GRADE_OVERRIDE_APPROVED, EventPublisher, GradeEvent
from gradebook.core.exceptions import ConflictError, ServiceError, ValidationError
from gradebook.core.models import AcademicTerm, GradeOverride, GradeOverrideAuditLog, Student, Subject
from gradebook.core.tenancy import get_owned_or_404, reject_foreign_school_id, scoped_select

from .schemas import GradeOverrideAuditResponse, GradeOverrideCreate, GradeOverrideResponse

logger = logging.getLogger(__name__)


def _term_clause(term_id: Optional[int]):
    if term_id is None:
        return GradeOverride.term_id.is_(None)
    return GradeOverride.term_id == term_id


async def _log_override_audit(
    db: AsyncSession,
    override: GradeOverride,
    action: OverrideAuditAction,
    performed_by: str,
    performed_by_role: str,
    remarks: Optional[str] = None,
) -> None:
    db.add(
        GradeOverrideAuditLog(
            school_id=override.school_id,
            override_id=override.id,
            student_id=override.student_id,
            subject_id=override.subject_id,
            term_id=override.term_id,
            action=action.value,
            override_grade=override.override_grade,
            performed_by=performed_by,
            performed_by_role=performed_by_role,
            remarks=remarks,
        )
    )


async def request_override(
    db: AsyncSession,
    school_id: int,
    requested_by: str,
    requested_by_role: str,
    payload: GradeOverrideCreate,
) -> GradeOverrideResponse:
    """
    Create a pending override. A second request for the same (student, subject, term)
    replaces the pending one in place; if that one is already approved the request is a conflict.
    """
    reject_foreign_school_id(payload.school_id, school_id)
    reason = payload.reason.strip()
    grade = payload.override_grade.strip()
    if not reason:
        raise ValidationError.for_field("reason", "A reason is required for a grade override")
    if not grade:
        raise ValidationError.for_field("override_grade", "Override grade is required")
    await get_owned_or_404(db, Student, school_id, payload.student_id, "Student")
    await get_owned_or_404(db, Subject, school_id, payload.subject_id, "Subject")
    if payload.term_id is not None:
        await get_owned_or_404(db, AcademicTerm, school_id, payload.term_id, "Academic term")

    existing = (
        await db.execute(
            scoped_select(
                GradeOverride,
                school_id,
                GradeOverride.student_id == payload.student_id,
                GradeOverride.subject_id == payload.subject_id,
                _term_clause(payload.term_id),
            ).with_for_update()
        )
    ).scalar_one_or_none()

    if existing is not None:
        if existing.status == OverrideStatus.approved:
            raise ConflictError(
                "An approved override already exists for this student, subject and term; reject it first"
            )
        existing.override_grade = grade
        existing.reason = reason
        existing.reason_bn = payload.reason_bn
        existing.created_by = requested_by
        await _log_override_audit(db, existing, OverrideAuditAction.UPDATED, requested_by, requested_by_role)
        await db.commit()
        await db.refresh(existing)
        return GradeOverrideResponse.model_validate(existing)

    override = GradeOverride(
        school_id=school_id,
        student_id=payload.student_id,
        subject_id=payload.subject_id,
        term_id=payload.term_id,
        override_grade=grade,
        reason=reason,
        reason_bn=payload.reason_bn,
        created_by=requested_by,
    )
    db.add(override)
    try:
        await db.flush()
        await _log_override_audit(db, override, OverrideAuditAction.REQUESTED, requested_by, requested_by_role)
        await db.commit()
    except IntegrityError:
        # Another request created the override for this student, subject and term first.
        await db.rollback()
        raise ConflictError(
            "An override for this student, subject and term was requested concurrently; reload and try again"
        )
    await db.refresh(override)
    return GradeOverrideResponse.model_validate(override)


async def approve_override(
    db: AsyncSession,
    school_id: int,
    override_id: int,
    approved_by: str,
    approved_by_role: str,
    publisher: EventPublisher,
    remarks: Optional[str] = None,
) -> GradeOverrideResponse:
    """pending -> approved. Approving twice is a conflict, not a no-op."""
    override = await get_owned_or_404(db, GradeOverride, school_id, override_id, "Grade override", for_update=True)
    if override.status == OverrideStatus.approved:
        raise ConflictError("Grade override is already approved")
    if override.created_by == approved_by:
        raise ServiceError(
            "A grade override must be approved by someone other than the requester",
            status.HTTP_403_FORBIDDEN,
        )

    override.approved_by = approved_by
    override.approved_at = datetime.now(timezone.utc)
    await _log_override_audit(db, override, OverrideAuditAction.APPROVED, approved_by, approved_by_role, remarks)
    await db.commit()
    await db.refresh(override)
    logger.info("Grade override %s approved school=%s", override.id, school_id)

    publisher.publish(
        GradeEvent(
            type=GRADE_OVERRIDE_APPROVED,
            school_id=school_id,
            subject_id=override.subject_id,
            student_id=override.student_id,
            grade=override.override_grade,
        )
    )
    return GradeOverrideResponse.model_validate(override)


async def reject_override(
    db: AsyncSession,
    school_id: int,
    override_id: int,
    rejected_by: str,
    rejected_by_role: str,
    can_manage: bool,
    remarks: Optional[str] = None,
) -> None:
    """Delete the override in any state. The requester may withdraw while pending; otherwise grade managers only."""
    override = await get_owned_or_404(db, GradeOverride, school_id, override_id, "Grade override", for_update=True)
    is_requester = override.created_by == rejected_by and override.status == OverrideStatus.pending
    if not can_manage and not is_requester:
        raise ServiceError("Insufficient permissions", status.HTTP_403_FORBIDDEN)

    await _log_override_audit(db, override, OverrideAuditAction.REJECTED, rejected_by, rejected_by_role, remarks)
    await db.delete(override)
    await db.commit()


async def list_overrides_for_student(
    db: AsyncSession,
    school_id: int,
    student_id: int,
    term_id: Optional[int] = None,
) -> List[GradeOverrideResponse]:
    await get_owned_or_404(db, Student, school_id, student_id, "Student")
    stmt = scoped_select(GradeOverride, school_id, GradeOverride.student_id == student_id)
    if term_id is not None:
        stmt = stmt.where(GradeOverride.term_id == term_id)
    rows = (await db.execute(stmt.order_by(GradeOverride.created_at.desc(), GradeOverride.id.desc()))).scalars().all()
    return [GradeOverrideResponse.model_validate(r) for r in rows]


async def list_pending_overrides(db: AsyncSession, school_id: int) -> List[GradeOverrideResponse]:
    rows = (
        await db.execute(
            scoped_select(GradeOverride, school_id, GradeOverride.approved_by.is_(None)).order_by(
                GradeOverride.created_at, GradeOverride.id
            )
        )
    ).scalars().all()
    return [GradeOverrideResponse.model_validate(r) for r in rows]


async def get_override_audit_trail(
    db: AsyncSession, school_id: int, override_id: int
) -> List[GradeOverrideAuditResponse]:
    """Trail survives rejection, so it is looked up by id only within the school."""
    rows = (
        await db.execute(
            select(GradeOverrideAuditLog)
            .where(
                GradeOverrideAuditLog.school_id == school_id,
                GradeOverrideAuditLog.override_id == override_id,
            )
            .order_by(GradeOverrideAuditLog.created_at, GradeOverrideAuditLog.id)
        )
    ).scalars().all()
    if not rows:
        await get_owned_or_404(db, GradeOverride, school_id, override_id, "Grade override")
    return [GradeOverrideAuditResponse.model_validate(r) for r in rows]


async def overrides_by_student(
    db: AsyncSession,
    school_id: int,
    student_ids: Iterable[int],
    subject_id: int,
    term_id: Optional[int],
) -> Dict[int, GradeOverride]:
    """Current override (any state) per student for one subject/term."""
    ids = set(student_ids)
    if not ids:
        return {}
    rows = (
        await db.execute(
            scoped_select(
                GradeOverride,
                school_id,
                GradeOverride.student_id.in_(ids),
                GradeOverride.subject_id == subject_id,
                _term_clause(term_id),
            )
        )
    ).scalars().all()
    return {r.student_id: r for r in rows}
