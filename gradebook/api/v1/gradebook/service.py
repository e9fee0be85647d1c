"""
Read side of the gradebook: weighted composites, final grades with override
precedence, the class grid and a student's own score sheet.
"""

from typing import Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook.api.v1.grade_overrides.service import overrides_by_student
from gradebook.api.v1.grade_scales.service import resolve_bands
from gradebook.core.enums import OverrideStatus
from gradebook.core.grading import GradeBand, WeightedEntry, letter_grade, score_percentage, weighted_composite
from gradebook.core.models import Assessment, GradeOverride, Student, StudentScore, Subject
from gradebook.core.tenancy import get_owned_or_404, scoped_select

from .schemas import (
    FinalGradeResponse,
    GradebookGrid,
    GridAssessment,
    GridCell,
    GridRow,
    GridStudent,
    StudentGradebookEntry,
    WeightedGradeResponse,
)


def _cell(assessment: Assessment, score: Optional[StudentScore], bands: Optional[Sequence[GradeBand]]) -> GridCell:
    if score is None:
        return GridCell(assessment_id=assessment.id)
    pct = score_percentage(score.gradable_score, assessment.total_marks)
    return GridCell(
        assessment_id=assessment.id,
        score=score.gradable_score,
        is_absent=score.is_absent,
        percentage=round(pct, 2) if pct is not None else None,
        grade=letter_grade(pct, bands) if pct is not None else None,
    )


def _composite(
    student_id: int,
    subject_id: int,
    term_id: Optional[int],
    assessments: Sequence[Assessment],
    scores: Dict[int, StudentScore],
    bands: Optional[Sequence[GradeBand]],
    scale_id: Optional[int],
) -> WeightedGradeResponse:
    """scores: assessment_id -> this student's score row."""
    entries = []
    for a in assessments:
        s = scores.get(a.id)
        if s is None:
            continue
        entries.append(
            WeightedEntry(
                total_marks=a.total_marks,
                weight_percentage=a.weight_percentage,
                score_obtained=s.score_obtained,
                is_absent=s.is_absent,
            )
        )
    result = weighted_composite(entries, bands)
    return WeightedGradeResponse(
        student_id=student_id,
        subject_id=subject_id,
        term_id=term_id,
        percentage=result.percentage,
        letter=result.letter,
        gpa=result.gpa,
        total_weight=result.total_weight,
        graded_count=result.graded_count,
        scale_id=scale_id,
    )


def _render_final(computed: WeightedGradeResponse, override: Optional[GradeOverride]) -> FinalGradeResponse:
    """Approved override replaces the computed grade; a pending one is only flagged."""
    final = FinalGradeResponse(
        student_id=computed.student_id,
        subject_id=computed.subject_id,
        term_id=computed.term_id,
        computed=computed,
        final_grade=computed.letter,
        source="computed" if computed.letter is not None else "none",
    )
    if override is None:
        return final
    final.override_id = override.id
    final.override_status = override.status
    if override.status == OverrideStatus.approved:
        final.final_grade = override.override_grade
        final.source = "override"
    else:
        final.pending_override_grade = override.override_grade
    return final


async def _subject_assessments(
    db: AsyncSession,
    school_id: int,
    subject_id: int,
    term_id: Optional[int],
    class_name: Optional[str] = None,
    section: Optional[str] = None,
) -> List[Assessment]:
    stmt = scoped_select(Assessment, school_id, Assessment.subject_id == subject_id)
    if term_id is not None:
        stmt = stmt.where(Assessment.term_id == term_id)
    if class_name is not None:
        stmt = stmt.where(Assessment.class_name == class_name)
    if section is not None:
        stmt = stmt.where(Assessment.section == section)
    return list((await db.execute(stmt.order_by(Assessment.date.desc(), Assessment.id.desc()))).scalars().all())


async def _scores_by_student(
    db: AsyncSession, school_id: int, assessment_ids: Sequence[int], student_ids: Optional[Sequence[int]] = None
) -> Dict[int, Dict[int, StudentScore]]:
    """student_id -> assessment_id -> score."""
    if not assessment_ids:
        return {}
    stmt = scoped_select(StudentScore, school_id, StudentScore.assessment_id.in_(assessment_ids))
    if student_ids is not None:
        stmt = stmt.where(StudentScore.student_id.in_(student_ids))
    out: Dict[int, Dict[int, StudentScore]] = {}
    for s in (await db.execute(stmt)).scalars().all():
        out.setdefault(s.student_id, {})[s.assessment_id] = s
    return out


async def compute_weighted_grade(
    db: AsyncSession,
    school_id: int,
    student_id: int,
    subject_id: int,
    term_id: Optional[int] = None,
    scale_id: Optional[int] = None,
) -> WeightedGradeResponse:
    await get_owned_or_404(db, Student, school_id, student_id, "Student")
    await get_owned_or_404(db, Subject, school_id, subject_id, "Subject")
    resolved_scale_id, bands = await resolve_bands(db, school_id, scale_id)
    assessments = await _subject_assessments(db, school_id, subject_id, term_id)
    scores = await _scores_by_student(db, school_id, [a.id for a in assessments], [student_id])
    return _composite(
        student_id, subject_id, term_id, assessments, scores.get(student_id, {}), bands, resolved_scale_id
    )


async def get_final_grade(
    db: AsyncSession,
    school_id: int,
    student_id: int,
    subject_id: int,
    term_id: Optional[int] = None,
    scale_id: Optional[int] = None,
) -> FinalGradeResponse:
    computed = await compute_weighted_grade(db, school_id, student_id, subject_id, term_id, scale_id)
    overrides = await overrides_by_student(db, school_id, [student_id], subject_id, term_id)
    return _render_final(computed, overrides.get(student_id))


async def get_class_grid(
    db: AsyncSession,
    school_id: int,
    class_name: str,
    section: str,
    subject_id: Optional[int] = None,
    term_id: Optional[int] = None,
    scale_id: Optional[int] = None,
) -> GradebookGrid:
    """{student, assessment, score, grade} grid; composites and final grades only when a subject is given."""
    resolved_scale_id, bands = await resolve_bands(db, school_id, scale_id)
    students = (
        await db.execute(
            scoped_select(
                Student,
                school_id,
                Student.class_name == class_name,
                Student.section == section,
                Student.status == "active",
            ).order_by(Student.roll_number, Student.id)
        )
    ).scalars().all()

    stmt = scoped_select(Assessment, school_id, Assessment.class_name == class_name, Assessment.section == section)
    if subject_id is not None:
        stmt = stmt.where(Assessment.subject_id == subject_id)
    if term_id is not None:
        stmt = stmt.where(Assessment.term_id == term_id)
    assessments = (await db.execute(stmt.order_by(Assessment.date.desc(), Assessment.id.desc()))).scalars().all()

    student_ids = [s.id for s in students]
    scores = await _scores_by_student(db, school_id, [a.id for a in assessments], student_ids)
    overrides = (
        await overrides_by_student(db, school_id, student_ids, subject_id, term_id) if subject_id is not None else {}
    )

    rows = []
    for student in students:
        student_scores = scores.get(student.id, {})
        row = GridRow(
            student=GridStudent.model_validate(student),
            cells=[_cell(a, student_scores.get(a.id), bands) for a in assessments],
        )
        if subject_id is not None:
            computed = _composite(
                student.id, subject_id, term_id, assessments, student_scores, bands, resolved_scale_id
            )
            final = _render_final(computed, overrides.get(student.id))
            row.composite_percentage = computed.percentage
            row.composite_grade = computed.letter
            row.final_grade = final.final_grade
            row.override_status = final.override_status
        rows.append(row)

    return GradebookGrid(
        class_name=class_name,
        section=section,
        subject_id=subject_id,
        term_id=term_id,
        assessments=[GridAssessment.model_validate(a) for a in assessments],
        rows=rows,
    )


async def get_student_gradebook(
    db: AsyncSession,
    school_id: int,
    student_id: int,
    term_id: Optional[int] = None,
) -> List[StudentGradebookEntry]:
    await get_owned_or_404(db, Student, school_id, student_id, "Student")
    _, bands = await resolve_bands(db, school_id)
    stmt = (
        select(StudentScore, Assessment)
        .join(Assessment, Assessment.id == StudentScore.assessment_id)
        .where(
            StudentScore.school_id == school_id,
            Assessment.school_id == school_id,
            StudentScore.student_id == student_id,
        )
    )
    if term_id is not None:
        stmt = stmt.where(Assessment.term_id == term_id)
    stmt = stmt.order_by(Assessment.date.desc(), Assessment.id.desc())

    entries = []
    for score, assessment in (await db.execute(stmt)).all():
        cell = _cell(assessment, score, bands)
        entries.append(
            StudentGradebookEntry(
                assessment_id=assessment.id,
                assessment_name=assessment.assessment_name,
                assessment_type=assessment.assessment_type,
                subject_id=assessment.subject_id,
                term_id=assessment.term_id,
                date=assessment.date,
                total_marks=assessment.total_marks,
                score=cell.score,
                is_absent=cell.is_absent,
                percentage=cell.percentage,
                grade=cell.grade,
            )
        )
    return entries
