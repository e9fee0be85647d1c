import datetime as dt
from typing import List, Optional

from pydantic import BaseModel

from gradebook.core.enums import OverrideStatus


class WeightedGradeResponse(BaseModel):
    """percentage is None until at least one non-absent score exists."""

    student_id: int
    subject_id: int
    term_id: Optional[int] = None
    percentage: Optional[float] = None
    letter: Optional[str] = None
    gpa: Optional[float] = None
    total_weight: float
    graded_count: int
    scale_id: Optional[int] = None


class FinalGradeResponse(BaseModel):
    student_id: int
    subject_id: int
    term_id: Optional[int] = None
    computed: WeightedGradeResponse
    final_grade: Optional[str] = None
    source: str  # computed | override | none
    override_id: Optional[int] = None
    override_status: Optional[OverrideStatus] = None
    pending_override_grade: Optional[str] = None


class GridAssessment(BaseModel):
    id: int
    assessment_name: str
    assessment_type: str
    subject_id: int
    total_marks: float
    weight_percentage: Optional[float] = None
    date: Optional[dt.date] = None
    is_published: bool

    class Config:
        from_attributes = True


class GridStudent(BaseModel):
    id: int
    student_code: str
    name: str
    roll_number: Optional[int] = None

    class Config:
        from_attributes = True


class GridCell(BaseModel):
    assessment_id: int
    score: Optional[float] = None
    is_absent: bool = False
    percentage: Optional[float] = None
    grade: Optional[str] = None


class GridRow(BaseModel):
    student: GridStudent
    cells: List[GridCell]
    composite_percentage: Optional[float] = None
    composite_grade: Optional[str] = None
    final_grade: Optional[str] = None
    override_status: Optional[OverrideStatus] = None


class GradebookGrid(BaseModel):
    """Plain tabular projection consumed by export generators."""

    class_name: str
    section: str
    subject_id: Optional[int] = None
    term_id: Optional[int] = None
    assessments: List[GridAssessment]
    rows: List[GridRow]


class StudentGradebookEntry(BaseModel):
    assessment_id: int
    assessment_name: str
    assessment_type: str
    subject_id: int
    term_id: Optional[int] = None
    date: Optional[dt.date] = None
    total_marks: float
    score: Optional[float] = None
    is_absent: bool
    percentage: Optional[float] = None
    grade: Optional[str] = None
