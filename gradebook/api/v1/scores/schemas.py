import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field


class ScoreEntry(BaseModel):
    assessment_id: int
    student_id: int
    score_obtained: Optional[float] = Field(None, ge=0)
    is_absent: bool = False
    remarks: Optional[str] = None
    graded_date: Optional[dt.date] = None


class ScoreRecord(ScoreEntry):
    """Single score upsert. change_reason is stored on the history entry when the score changes."""

    change_reason: Optional[str] = Field(None, max_length=2000)


class BulkScoreRecord(BaseModel):
    scores: List[ScoreEntry] = Field(..., min_length=1)
    change_reason: Optional[str] = Field(None, max_length=2000)


class StudentScoreResponse(BaseModel):
    id: int
    assessment_id: int
    student_id: int
    score_obtained: Optional[float] = None
    grade_letter: Optional[str] = None
    remarks: Optional[str] = None
    is_absent: bool
    graded_by: Optional[str] = None
    graded_date: Optional[dt.date] = None
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


class BulkScoreResponse(BaseModel):
    created: int
    updated: int
    scores: List[StudentScoreResponse]


class GradeHistoryResponse(BaseModel):
    id: int
    student_score_id: int
    student_id: int
    assessment_id: int
    old_score: Optional[float] = None
    new_score: Optional[float] = None
    old_grade: Optional[str] = None
    new_grade: Optional[str] = None
    changed_by: Optional[str] = None
    change_reason: Optional[str] = None
    created_at: dt.datetime

    class Config:
        from_attributes = True
