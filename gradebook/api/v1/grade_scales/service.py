import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.core.exceptions import ValidationError
from gradebook.core.grading import GradeBand, bands_from_labels, letter_grade, score_percentage, validate_bands
from gradebook.core.models import Assessment, GradeScale, StudentScore
from gradebook.core.tenancy import get_owned_or_404, reject_foreign_school_id, scoped_select

from .schemas import GradeLabel, GradeScaleCreate, GradeScaleResponse, GradeScaleUpdate

logger = logging.getLogger(__name__)


def _labels_to_json(labels: List[GradeLabel]) -> List[dict]:
    data = [label.model_dump(exclude_none=True) for label in labels]
    errors = validate_bands(data)
    if errors:
        raise ValidationError("Invalid grade bands", errors)
    return data


async def _clear_default(db: AsyncSession, school_id: int, keep_id: Optional[int] = None) -> None:
    """Unset is_default on every other scale of the school."""
    stmt = update(GradeScale).where(GradeScale.school_id == school_id, GradeScale.is_default.is_(True))
    if keep_id is not None:
        stmt = stmt.where(GradeScale.id != keep_id)
    await db.execute(stmt.values(is_default=False).execution_options(synchronize_session="fetch"))


async def list_grade_scales(db: AsyncSession, school_id: int) -> List[GradeScaleResponse]:
    """Default scale first."""
    rows = (
        await db.execute(
            scoped_select(GradeScale, school_id).order_by(GradeScale.is_default.desc(), GradeScale.id)
        )
    ).scalars().all()
    return [GradeScaleResponse.model_validate(s) for s in rows]


async def get_grade_scale(db: AsyncSession, school_id: int, scale_id: int) -> GradeScaleResponse:
    scale = await get_owned_or_404(db, GradeScale, school_id, scale_id, "Grade scale")
    return GradeScaleResponse.model_validate(scale)


async def create_grade_scale(db: AsyncSession, school_id: int, payload: GradeScaleCreate) -> GradeScaleResponse:
    reject_foreign_school_id(payload.school_id, school_id)
    labels = _labels_to_json(payload.grade_labels)
    if payload.is_default:
        await _clear_default(db, school_id)
    scale = GradeScale(
        school_id=school_id,
        scale_name=payload.scale_name.strip(),
        scale_name_bn=payload.scale_name_bn,
        scale_type=payload.scale_type.value,
        grade_labels=labels,
        is_default=payload.is_default,
    )
    db.add(scale)
    if scale.is_default:
        await regrade_scores(db, school_id)
    await db.commit()
    await db.refresh(scale)
    return GradeScaleResponse.model_validate(scale)


async def update_grade_scale(
    db: AsyncSession, school_id: int, scale_id: int, payload: GradeScaleUpdate
) -> GradeScaleResponse:
    reject_foreign_school_id(payload.school_id, school_id)
    scale = await get_owned_or_404(db, GradeScale, school_id, scale_id, "Grade scale", for_update=True)
    was_default = scale.is_default
    if payload.scale_name is not None:
        scale.scale_name = payload.scale_name.strip()
    if payload.scale_name_bn is not None:
        scale.scale_name_bn = payload.scale_name_bn
    if payload.scale_type is not None:
        scale.scale_type = payload.scale_type.value
    if payload.grade_labels is not None:
        scale.grade_labels = _labels_to_json(payload.grade_labels)
    if payload.is_default is True:
        await _clear_default(db, school_id, keep_id=scale.id)
        scale.is_default = True
    elif payload.is_default is False:
        scale.is_default = False
    if was_default or scale.is_default:
        await regrade_scores(db, school_id)
    await db.commit()
    await db.refresh(scale)
    return GradeScaleResponse.model_validate(scale)


async def set_default_grade_scale(db: AsyncSession, school_id: int, scale_id: int) -> GradeScaleResponse:
    """Promote one scale to default; every other scale of the school is demoted in the same commit."""
    return await update_grade_scale(db, school_id, scale_id, GradeScaleUpdate(is_default=True))


async def delete_grade_scale(db: AsyncSession, school_id: int, scale_id: int) -> None:
    scale = await get_owned_or_404(db, GradeScale, school_id, scale_id, "Grade scale")
    await db.delete(scale)
    if scale.is_default:
        await regrade_scores(db, school_id)
    await db.commit()


async def resolve_bands(
    db: AsyncSession, school_id: int, scale_id: Optional[int] = None
) -> Tuple[Optional[int], Optional[List[GradeBand]]]:
    """
    Bands to grade with: the requested scale, else the school's default scale,
    else (None, None) meaning the fixed default thresholds.
    """
    if scale_id is not None:
        scale = await get_owned_or_404(db, GradeScale, school_id, scale_id, "Grade scale")
    else:
        scale = (
            await db.execute(
                scoped_select(GradeScale, school_id, GradeScale.is_default.is_(True))
                .order_by(GradeScale.id)
                .limit(1)
            )
        ).scalar_one_or_none()
    if scale is None:
        return None, None
    return scale.id, bands_from_labels(scale.grade_labels)


async def regrade_scores(
    db: AsyncSession, school_id: int, assessment_ids: Optional[Iterable[int]] = None
) -> int:
    """
    Recompute stored grade_letter values against the school's current default
    scale and each assessment's current total_marks. Does not commit.
    """
    await db.flush()
    _, bands = await resolve_bands(db, school_id)
    stmt = (
        select(StudentScore, Assessment.total_marks)
        .join(Assessment, Assessment.id == StudentScore.assessment_id)
        .where(StudentScore.school_id == school_id, Assessment.school_id == school_id)
    )
    if assessment_ids is not None:
        stmt = stmt.where(StudentScore.assessment_id.in_(list(assessment_ids)))
    changed = 0
    for score, total_marks in (await db.execute(stmt)).all():
        pct = score_percentage(score.score_obtained, total_marks)
        letter = letter_grade(pct, bands) if pct is not None else None
        if letter != score.grade_letter:
            score.grade_letter = letter
            changed += 1
    if changed:
        logger.info("Regraded %d stored scores for school %s", changed, school_id)
    return changed
