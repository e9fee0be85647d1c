from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from gradebook.core.enums import OverrideStatus


class GradeOverrideCreate(BaseModel):
    """Teacher request to force a final grade. Always starts pending."""

    school_id: Optional[int] = None
    student_id: int
    subject_id: int
    term_id: Optional[int] = None
    override_grade: str = Field(..., min_length=1, max_length=10)
    reason: str = Field(..., max_length=2000)
    reason_bn: Optional[str] = Field(None, max_length=2000)


class GradeOverrideDecision(BaseModel):
    remarks: Optional[str] = Field(None, max_length=2000)


class GradeOverrideResponse(BaseModel):
    id: int
    student_id: int
    subject_id: int
    term_id: Optional[int] = None
    override_grade: str
    reason: str
    reason_bn: Optional[str] = None
    status: OverrideStatus
    created_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class GradeOverrideAuditResponse(BaseModel):
    id: int
    override_id: int
    student_id: int
    subject_id: int
    term_id: Optional[int] = None
    action: str
    override_grade: Optional[str] = None
    performed_by: Optional[str] = None
    performed_by_role: Optional[str] = None
    remarks: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
