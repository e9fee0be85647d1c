"""Score store: upsert single scores, record batches atomically, append grade history on change."""

import logging
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.api.v1.grade_scales.service import resolve_bands
from gradebook.core.exceptions import ConflictError, TransactionFailure, ValidationError
from gradebook.core.grading import GradeBand, letter_grade, score_percentage
from gradebook.core.models import Assessment, GradeHistory, Student, StudentScore
from gradebook.core.tenancy import get_all_owned_or_404, get_owned_or_404, scoped_select

from .schemas import (
    BulkScoreRecord,
    BulkScoreResponse,
    GradeHistoryResponse,
    ScoreEntry,
    ScoreRecord,
    StudentScoreResponse,
)

logger = logging.getLogger(__name__)


def _score_errors(entry: ScoreEntry, assessment: Assessment, field_prefix: str = "") -> List[Dict[str, str]]:
    if entry.is_absent or entry.score_obtained is None:
        return []
    if entry.score_obtained > assessment.total_marks:
        return [
            {
                "field": f"{field_prefix}score_obtained",
                "message": f"Score cannot exceed total marks ({assessment.total_marks:g})",
            }
        ]
    return []


def _grade_for(score: Optional[float], assessment: Assessment, bands: Optional[Sequence[GradeBand]]) -> Optional[str]:
    pct = score_percentage(score, assessment.total_marks)
    return letter_grade(pct, bands) if pct is not None else None


async def _apply_score(
    db: AsyncSession,
    school_id: int,
    assessment: Assessment,
    entry: ScoreEntry,
    graded_by: str,
    bands: Optional[Sequence[GradeBand]],
    change_reason: Optional[str],
) -> Tuple[StudentScore, bool]:
    """Insert or update one score row (locked for update). Returns (row, created)."""
    # Absent means no score, whatever number was sent.
    new_score = None if entry.is_absent else entry.score_obtained
    new_grade = _grade_for(new_score, assessment, bands)

    existing = (
        await db.execute(
            scoped_select(
                StudentScore,
                school_id,
                StudentScore.assessment_id == assessment.id,
                StudentScore.student_id == entry.student_id,
            ).with_for_update()
        )
    ).scalar_one_or_none()

    if existing is None:
        score = StudentScore(
            school_id=school_id,
            assessment_id=assessment.id,
            student_id=entry.student_id,
            score_obtained=new_score,
            grade_letter=new_grade,
            remarks=entry.remarks,
            is_absent=entry.is_absent,
            graded_by=graded_by,
            graded_date=entry.graded_date or date.today(),
        )
        db.add(score)
        return score, True

    changed = existing.score_obtained != new_score or existing.is_absent != entry.is_absent
    if changed:
        db.add(
            GradeHistory(
                school_id=school_id,
                student_score_id=existing.id,
                student_id=existing.student_id,
                assessment_id=existing.assessment_id,
                old_score=existing.score_obtained,
                new_score=new_score,
                old_grade=existing.grade_letter,
                new_grade=new_grade,
                changed_by=graded_by,
                change_reason=change_reason,
            )
        )
    existing.score_obtained = new_score
    existing.grade_letter = new_grade
    existing.is_absent = entry.is_absent
    if entry.remarks is not None:
        existing.remarks = entry.remarks
    existing.graded_by = graded_by
    existing.graded_date = entry.graded_date or date.today()
    return existing, False


async def record_score(
    db: AsyncSession,
    school_id: int,
    graded_by: str,
    payload: ScoreRecord,
) -> StudentScoreResponse:
    assessment = await get_owned_or_404(db, Assessment, school_id, payload.assessment_id, "Assessment")
    await get_owned_or_404(db, Student, school_id, payload.student_id, "Student")
    errors = _score_errors(payload, assessment)
    if errors:
        raise ValidationError("Invalid score", errors)
    _, bands = await resolve_bands(db, school_id)

    score, _ = await _apply_score(db, school_id, assessment, payload, graded_by, bands, payload.change_reason)
    try:
        await db.commit()
    except IntegrityError:
        # Another request inserted the same (assessment, student) first.
        await db.rollback()
        raise ConflictError("Score was recorded concurrently; reload and try again")
    await db.refresh(score)
    return StudentScoreResponse.model_validate(score)


async def record_scores_bulk(
    db: AsyncSession,
    school_id: int,
    graded_by: str,
    payload: BulkScoreRecord,
) -> BulkScoreResponse:
    """All entries are validated first, then written in one transaction; nothing is applied on failure."""
    assessments = {
        a.id: a
        for a in await get_all_owned_or_404(
            db, Assessment, school_id, {e.assessment_id for e in payload.scores}, "One or more assessments"
        )
    }
    await get_all_owned_or_404(db, Student, school_id, {e.student_id for e in payload.scores}, "One or more students")

    errors: List[Dict[str, str]] = []
    failing = set()
    seen = set()
    for i, entry in enumerate(payload.scores):
        key = (entry.assessment_id, entry.student_id)
        entry_errors = _score_errors(entry, assessments[entry.assessment_id], f"scores[{i}].")
        if key in seen:
            entry_errors.insert(0, {"field": f"scores[{i}]", "message": "Duplicate entry for this student and assessment"})
        seen.add(key)
        if entry_errors:
            failing.add(entry.student_id)
            errors.extend(entry_errors)
    if errors:
        raise ValidationError(f"Invalid scores for student ids {sorted(failing)}", errors)

    _, bands = await resolve_bands(db, school_id)
    rows: List[StudentScore] = []
    created = 0
    try:
        for entry in payload.scores:
            score, was_created = await _apply_score(
                db, school_id, assessments[entry.assessment_id], entry, graded_by, bands, payload.change_reason
            )
            rows.append(score)
            created += int(was_created)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception(
            "Bulk score recording failed school=%s assessment_ids=%s students=%s",
            school_id,
            sorted(assessments),
            sorted({e.student_id for e in payload.scores}),
        )
        raise TransactionFailure("Bulk score recording")

    for row in rows:
        await db.refresh(row)
    return BulkScoreResponse(
        created=created,
        updated=len(rows) - created,
        scores=[StudentScoreResponse.model_validate(r) for r in rows],
    )


async def list_scores_for_assessment(
    db: AsyncSession, school_id: int, assessment_id: int
) -> List[StudentScoreResponse]:
    await get_owned_or_404(db, Assessment, school_id, assessment_id, "Assessment")
    rows = (
        await db.execute(
            scoped_select(StudentScore, school_id, StudentScore.assessment_id == assessment_id).order_by(
                StudentScore.student_id
            )
        )
    ).scalars().all()
    return [StudentScoreResponse.model_validate(r) for r in rows]


async def get_grade_history(
    db: AsyncSession, school_id: int, student_id: int, assessment_id: int
) -> List[GradeHistoryResponse]:
    """Changes for one (student, assessment), newest first."""
    await get_owned_or_404(db, Assessment, school_id, assessment_id, "Assessment")
    await get_owned_or_404(db, Student, school_id, student_id, "Student")
    rows = (
        await db.execute(
            select(GradeHistory)
            .where(
                GradeHistory.school_id == school_id,
                GradeHistory.student_id == student_id,
                GradeHistory.assessment_id == assessment_id,
            )
            .order_by(GradeHistory.created_at.desc(), GradeHistory.id.desc())
        )
    ).scalars().all()
    return [GradeHistoryResponse.model_validate(r) for r in rows]
