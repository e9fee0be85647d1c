from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from gradebook.core.enums import ScaleType


class GradeLabel(BaseModel):
    min: float
    max: float
    grade: str = Field(..., min_length=1, max_length=10)
    gpa: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None


class GradeScaleCreate(BaseModel):
    school_id: Optional[int] = None
    scale_name: str = Field(..., min_length=1)
    scale_name_bn: Optional[str] = None
    scale_type: ScaleType
    grade_labels: List[GradeLabel] = Field(..., min_length=1)
    is_default: bool = False


class GradeScaleUpdate(BaseModel):
    school_id: Optional[int] = None
    scale_name: Optional[str] = Field(None, min_length=1)
    scale_name_bn: Optional[str] = None
    scale_type: Optional[ScaleType] = None
    grade_labels: Optional[List[GradeLabel]] = Field(None, min_length=1)
    is_default: Optional[bool] = None


class GradeScaleResponse(BaseModel):
    id: int
    school_id: int
    scale_name: str
    scale_name_bn: Optional[str] = None
    scale_type: str
    grade_labels: List[GradeLabel]
    is_default: bool
    created_at: datetime

    class Config:
        from_attributes = True
