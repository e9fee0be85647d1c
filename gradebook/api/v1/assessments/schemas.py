import datetime as dt
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from gradebook.core.enums import AssessmentType, ComponentType


# ----- Assessment -----
class AssessmentCreate(BaseModel):
    """school_id is taken from the token; when echoed it must match."""

    school_id: Optional[int] = None
    subject_id: int
    term_id: Optional[int] = None
    class_name: str = Field(..., min_length=1, max_length=50)
    section: str = Field(..., min_length=1, max_length=20)
    assessment_name: str = Field(..., min_length=1)
    assessment_name_bn: Optional[str] = None
    assessment_type: AssessmentType
    total_marks: float = Field(..., gt=0)
    weight_percentage: Optional[float] = Field(None, ge=0, le=100)
    date: Optional[dt.date] = None
    description: Optional[str] = None


class AssessmentUpdate(BaseModel):
    school_id: Optional[int] = None
    term_id: Optional[int] = None
    assessment_name: Optional[str] = Field(None, min_length=1)
    assessment_name_bn: Optional[str] = None
    assessment_type: Optional[AssessmentType] = None
    total_marks: Optional[float] = Field(None, gt=0)
    weight_percentage: Optional[float] = Field(None, ge=0, le=100)
    date: Optional[dt.date] = None
    description: Optional[str] = None


class AssessmentResponse(BaseModel):
    id: int
    school_id: int
    subject_id: int
    term_id: Optional[int] = None
    class_name: str
    section: str
    assessment_name: str
    assessment_name_bn: Optional[str] = None
    assessment_type: str
    total_marks: float
    weight_percentage: Optional[float] = None
    date: Optional[dt.date] = None
    description: Optional[str] = None
    created_by: Optional[str] = None
    is_published: bool
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


# ----- Components -----
class RubricCriterion(BaseModel):
    criterion: str
    points: float
    description: Optional[str] = None


class AssessmentComponentCreate(BaseModel):
    component_name: str = Field(..., min_length=1)
    component_name_bn: Optional[str] = None
    component_type: ComponentType
    max_score: float = Field(..., gt=0)
    weight_percentage: Optional[float] = Field(None, ge=0, le=100)
    passing_marks: Optional[float] = Field(None, ge=0)
    rubric_criteria: Optional[List[RubricCriterion]] = None


class AssessmentComponentResponse(BaseModel):
    id: int
    assessment_id: int
    component_name: str
    component_name_bn: Optional[str] = None
    component_type: str
    max_score: float
    weight_percentage: Optional[float] = None
    passing_marks: Optional[float] = None
    rubric_criteria: Optional[List[RubricCriterion]] = None
    created_at: dt.datetime

    class Config:
        from_attributes = True


class AssessmentDetailResponse(AssessmentResponse):
    components: List[AssessmentComponentResponse] = Field(default_factory=list)


# ----- Bulk operations -----
class CopyToClassRequest(BaseModel):
    class_name: str = Field(..., min_length=1, max_length=50)
    section: str = Field(..., min_length=1, max_length=20)


class BulkDeleteRequest(BaseModel):
    assessment_ids: List[int] = Field(..., min_length=1)
    force: bool = Field(False, description="Also delete recorded scores and their history")


class BulkDeleteResponse(BaseModel):
    deleted_ids: List[int]
    deleted_scores: int


class BulkPublishRequest(BaseModel):
    assessment_ids: List[int] = Field(..., min_length=1)
    is_published: bool = True


# ----- Distribution -----
class GradeDistributionResponse(BaseModel):
    assessment_id: int
    total_marks: float
    distribution: Dict[str, int]
    total_students: int
    graded_count: int
    absent_count: int
    average: Optional[float] = None
    average_percentage: Optional[float] = None
    highest: Optional[float] = None
    lowest: Optional[float] = None
    scale_id: Optional[int] = None
