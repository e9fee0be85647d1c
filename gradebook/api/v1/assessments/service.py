"""Assessment store: definitions, components, bulk duplicate/copy/delete/publish, distribution."""

import logging
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from gradebook.api.v1.grade_scales.service import regrade_scores, resolve_bands
from gradebook.core.events import GRADES_PUBLISHED, EventPublisher, GradeEvent
from gradebook.core.exceptions import ConflictError, TransactionFailure, ValidationError
from gradebook.core.grading import grade_distribution
from gradebook.core.models import (
    AcademicTerm,
    Assessment,
    AssessmentComponent,
    GradeHistory,
    StudentScore,
    Subject,
)
from gradebook.core.tenancy import (
    get_all_owned_or_404,
    get_owned_or_404,
    reject_foreign_school_id,
    scoped_select,
)

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

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"
COPY_SUFFIX_BN = " (অনুলিপি)"


async def _ensure_subject_and_term(
    db: AsyncSession,
    school_id: int,
    subject_id: Optional[int],
    term_id: Optional[int],
) -> None:
    """Referenced subject/term must belong to the same school."""
    if subject_id is not None:
        found = (
            await db.execute(scoped_select(Subject, school_id, Subject.id == subject_id))
        ).scalar_one_or_none()
        if not found:
            raise ValidationError.for_field("subject_id", "Subject not found")
    if term_id is not None:
        found = (
            await db.execute(scoped_select(AcademicTerm, school_id, AcademicTerm.id == term_id))
        ).scalar_one_or_none()
        if not found:
            raise ValidationError.for_field("term_id", "Academic term not found")


async def get_assessment_or_404(
    db: AsyncSession, school_id: int, assessment_id: int, for_update: bool = False
) -> Assessment:
    return await get_owned_or_404(db, Assessment, school_id, assessment_id, "Assessment", for_update=for_update)


async def create_assessment(
    db: AsyncSession,
    school_id: int,
    created_by: str,
    payload: AssessmentCreate,
) -> AssessmentResponse:
    reject_foreign_school_id(payload.school_id, school_id)
    name = payload.assessment_name.strip()
    if not name:
        raise ValidationError.for_field("assessment_name", "Assessment name is required")
    await _ensure_subject_and_term(db, school_id, payload.subject_id, payload.term_id)

    assessment = Assessment(
        school_id=school_id,
        subject_id=payload.subject_id,
        term_id=payload.term_id,
        class_name=payload.class_name.strip(),
        section=payload.section.strip(),
        assessment_name=name,
        assessment_name_bn=payload.assessment_name_bn,
        assessment_type=payload.assessment_type.value,
        total_marks=payload.total_marks,
        weight_percentage=payload.weight_percentage,
        date=payload.date,
        description=payload.description,
        created_by=created_by,
        is_published=False,
    )
    db.add(assessment)
    await db.commit()
    await db.refresh(assessment)
    return AssessmentResponse.model_validate(assessment)


async def list_assessments(
    db: AsyncSession,
    school_id: int,
    class_name: str,
    section: str,
    subject_id: Optional[int] = None,
    term_id: Optional[int] = None,
) -> List[AssessmentResponse]:
    """Assessments for a class/section, newest date first."""
    stmt = scoped_select(
        Assessment,
        school_id,
        Assessment.class_name == class_name,
        Assessment.section == section,
    )
    if subject_id is not None:
        stmt = stmt.where(Assessment.subject_id == subject_id)
    if term_id is not None:
        stmt = stmt.where(Assessment.term_id == term_id)
    stmt = stmt.order_by(Assessment.date.desc(), Assessment.id.desc())
    rows = (await db.execute(stmt)).scalars().all()
    return [AssessmentResponse.model_validate(a) for a in rows]


async def get_assessment(db: AsyncSession, school_id: int, assessment_id: int) -> AssessmentDetailResponse:
    assessment = await _load_with_components(db, school_id, assessment_id)
    return AssessmentDetailResponse.model_validate(assessment)


async def update_assessment(
    db: AsyncSession,
    school_id: int,
    assessment_id: int,
    payload: AssessmentUpdate,
) -> AssessmentResponse:
    reject_foreign_school_id(payload.school_id, school_id)
    assessment = await get_assessment_or_404(db, school_id, assessment_id, for_update=True)
    await _ensure_subject_and_term(db, school_id, None, payload.term_id)

    if payload.total_marks is not None and payload.total_marks != assessment.total_marks:
        highest = (
            await db.execute(
                select(func.max(StudentScore.score_obtained)).where(
                    StudentScore.school_id == school_id,
                    StudentScore.assessment_id == assessment.id,
                )
            )
        ).scalar_one_or_none()
        if highest is not None and highest > payload.total_marks:
            raise ValidationError.for_field(
                "total_marks", f"Recorded scores go up to {highest}; total_marks cannot be lower"
            )
        assessment.total_marks = payload.total_marks
        await regrade_scores(db, school_id, [assessment.id])

    if payload.assessment_name is not None:
        name = payload.assessment_name.strip()
        if not name:
            raise ValidationError.for_field("assessment_name", "Assessment name is required")
        assessment.assessment_name = name
    if payload.assessment_name_bn is not None:
        assessment.assessment_name_bn = payload.assessment_name_bn
    if payload.assessment_type is not None:
        assessment.assessment_type = payload.assessment_type.value
    if payload.term_id is not None:
        assessment.term_id = payload.term_id
    if "weight_percentage" in payload.model_fields_set:
        assessment.weight_percentage = payload.weight_percentage
    if payload.date is not None:
        assessment.date = payload.date
    if payload.description is not None:
        assessment.description = payload.description

    await db.commit()
    await db.refresh(assessment)
    return AssessmentResponse.model_validate(assessment)


# --- Components ---


async def list_components(
    db: AsyncSession, school_id: int, assessment_id: int
) -> List[AssessmentComponentResponse]:
    await get_assessment_or_404(db, school_id, assessment_id)
    rows = (
        await db.execute(
            scoped_select(
                AssessmentComponent, school_id, AssessmentComponent.assessment_id == assessment_id
            ).order_by(AssessmentComponent.component_type, AssessmentComponent.id)
        )
    ).scalars().all()
    return [AssessmentComponentResponse.model_validate(c) for c in rows]


async def create_component(
    db: AsyncSession,
    school_id: int,
    assessment_id: int,
    payload: AssessmentComponentCreate,
) -> AssessmentComponentResponse:
    assessment = await get_assessment_or_404(db, school_id, assessment_id)
    if payload.max_score > assessment.total_marks:
        raise ValidationError.for_field("max_score", "Component max_score exceeds the assessment's total_marks")
    if payload.passing_marks is not None and payload.passing_marks > payload.max_score:
        raise ValidationError.for_field("passing_marks", "passing_marks cannot exceed max_score")

    component = AssessmentComponent(
        school_id=school_id,
        assessment_id=assessment.id,
        component_name=payload.component_name.strip(),
        component_name_bn=payload.component_name_bn,
        component_type=payload.component_type.value,
        max_score=payload.max_score,
        weight_percentage=payload.weight_percentage,
        passing_marks=payload.passing_marks,
        rubric_criteria=[c.model_dump() for c in payload.rubric_criteria] if payload.rubric_criteria else None,
    )
    db.add(component)
    await db.commit()
    await db.refresh(component)
    return AssessmentComponentResponse.model_validate(component)


async def delete_component(db: AsyncSession, school_id: int, assessment_id: int, component_id: int) -> None:
    await get_assessment_or_404(db, school_id, assessment_id)
    component = await get_owned_or_404(db, AssessmentComponent, school_id, component_id, "Assessment component")
    if component.assessment_id != assessment_id:
        raise ValidationError.for_field("component_id", "Component does not belong to this assessment")
    await db.delete(component)
    await db.commit()


# --- Bulk operations ---


def _clone(source: Assessment, **overrides) -> Assessment:
    """New unpublished assessment with the source's definition and components, no scores."""
    values = dict(
        school_id=source.school_id,
        subject_id=source.subject_id,
        term_id=source.term_id,
        class_name=source.class_name,
        section=source.section,
        assessment_name=source.assessment_name,
        assessment_name_bn=source.assessment_name_bn,
        assessment_type=source.assessment_type,
        total_marks=source.total_marks,
        weight_percentage=source.weight_percentage,
        date=source.date,
        description=source.description,
        created_by=source.created_by,
        is_published=False,
    )
    values.update(overrides)
    clone = Assessment(**values)
    clone.components = [
        AssessmentComponent(
            school_id=c.school_id,
            component_name=c.component_name,
            component_name_bn=c.component_name_bn,
            component_type=c.component_type,
            max_score=c.max_score,
            weight_percentage=c.weight_percentage,
            passing_marks=c.passing_marks,
            rubric_criteria=c.rubric_criteria,
        )
        for c in source.components
    ]
    return clone


async def _load_with_components(db: AsyncSession, school_id: int, assessment_id: int) -> Assessment:
    assessment = (
        await db.execute(
            scoped_select(Assessment, school_id, Assessment.id == assessment_id)
            .options(selectinload(Assessment.components))
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if assessment is None:
        await get_assessment_or_404(db, school_id, assessment_id)
    return assessment


async def _save_clone(db: AsyncSession, clone: Assessment) -> AssessmentDetailResponse:
    db.add(clone)
    await db.commit()
    # Reload so components are populated without lazy IO.
    loaded = await _load_with_components(db, clone.school_id, clone.id)
    return AssessmentDetailResponse.model_validate(loaded)


async def duplicate_assessment(
    db: AsyncSession, school_id: int, assessment_id: int, created_by: str
) -> AssessmentDetailResponse:
    source = await _load_with_components(db, school_id, assessment_id)
    clone = _clone(
        source,
        assessment_name=f"{source.assessment_name}{COPY_SUFFIX}",
        assessment_name_bn=f"{source.assessment_name_bn}{COPY_SUFFIX_BN}" if source.assessment_name_bn else None,
        created_by=created_by,
    )
    return await _save_clone(db, clone)


async def copy_assessment_to_class(
    db: AsyncSession,
    school_id: int,
    assessment_id: int,
    created_by: str,
    payload: CopyToClassRequest,
) -> AssessmentDetailResponse:
    source = await _load_with_components(db, school_id, assessment_id)
    class_name, section = payload.class_name.strip(), payload.section.strip()
    if (class_name, section) == (source.class_name, source.section):
        raise ValidationError.for_field("class_name", "Target class/section is the same as the source; use duplicate")
    clone = _clone(source, class_name=class_name, section=section, created_by=created_by)
    return await _save_clone(db, clone)


async def bulk_delete_assessments(
    db: AsyncSession,
    school_id: int,
    payload: BulkDeleteRequest,
) -> BulkDeleteResponse:
    """
    Delete all requested assessments or none.

    Every id must belong to the school. Assessments with recorded scores are
    blocked unless force is set; published ones with scores are always blocked.
    """
    ids = sorted(set(payload.assessment_ids))
    assessments = await get_all_owned_or_404(db, Assessment, school_id, ids, "One or more assessments")

    score_counts = dict(
        (
            await db.execute(
                select(StudentScore.assessment_id, func.count())
                .where(StudentScore.school_id == school_id, StudentScore.assessment_id.in_(ids))
                .group_by(StudentScore.assessment_id)
            )
        ).all()
    )
    published_with_scores = [a.id for a in assessments if a.is_published and score_counts.get(a.id)]
    if published_with_scores:
        raise ConflictError(f"Published assessments with recorded scores cannot be deleted: {published_with_scores}")
    with_scores = [a.id for a in assessments if score_counts.get(a.id)]
    if with_scores and not payload.force:
        raise ConflictError(
            f"Assessments have recorded scores: {with_scores}. Pass force=true to delete them with their scores."
        )

    try:
        await db.execute(
            delete(GradeHistory).where(GradeHistory.school_id == school_id, GradeHistory.assessment_id.in_(ids))
        )
        await db.execute(
            delete(StudentScore).where(StudentScore.school_id == school_id, StudentScore.assessment_id.in_(ids))
        )
        await db.execute(
            delete(AssessmentComponent).where(
                AssessmentComponent.school_id == school_id, AssessmentComponent.assessment_id.in_(ids)
            )
        )
        await db.execute(delete(Assessment).where(Assessment.school_id == school_id, Assessment.id.in_(ids)))
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Bulk delete failed school=%s assessment_ids=%s", school_id, ids)
        raise TransactionFailure("Bulk delete")

    return BulkDeleteResponse(deleted_ids=ids, deleted_scores=sum(score_counts.values()))


async def bulk_publish_assessments(
    db: AsyncSession,
    school_id: int,
    payload: BulkPublishRequest,
    publisher: EventPublisher,
) -> List[AssessmentResponse]:
    ids = sorted(set(payload.assessment_ids))
    assessments = await get_all_owned_or_404(db, Assessment, school_id, ids, "One or more assessments")
    newly_published = [a for a in assessments if payload.is_published and not a.is_published]
    for a in assessments:
        a.is_published = payload.is_published
    await db.commit()
    for a in assessments:
        await db.refresh(a)
    for a in newly_published:
        publisher.publish(
            GradeEvent(type=GRADES_PUBLISHED, school_id=school_id, subject_id=a.subject_id, assessment_id=a.id)
        )
    return [AssessmentResponse.model_validate(a) for a in assessments]


# --- Statistics ---


async def get_grade_distribution(
    db: AsyncSession,
    school_id: int,
    assessment_id: int,
    scale_id: Optional[int] = None,
) -> GradeDistributionResponse:
    assessment = await get_assessment_or_404(db, school_id, assessment_id)
    resolved_scale_id, bands = await resolve_bands(db, school_id, scale_id)
    rows = (
        await db.execute(
            select(StudentScore.score_obtained, StudentScore.is_absent).where(
                StudentScore.school_id == school_id,
                StudentScore.assessment_id == assessment.id,
            )
        )
    ).all()
    dist = grade_distribution([(r.score_obtained, r.is_absent) for r in rows], assessment.total_marks, bands)
    return GradeDistributionResponse(
        assessment_id=assessment.id,
        total_marks=assessment.total_marks,
        distribution=dist.buckets,
        total_students=dist.total_students,
        graded_count=dist.graded_count,
        absent_count=dist.absent_count,
        average=dist.average,
        average_percentage=dist.average_percentage,
        highest=dist.highest,
        lowest=dist.lowest,
        scale_id=resolved_scale_id,
    )
