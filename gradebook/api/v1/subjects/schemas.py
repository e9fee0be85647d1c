from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SubjectCreate(BaseModel):
    name: str = Field(..., max_length=255)
    name_bn: Optional[str] = Field(None, max_length=255)
    code: str = Field(..., max_length=50)


class SubjectResponse(BaseModel):
    id: int
    school_id: int
    name: str
    name_bn: Optional[str] = None
    code: str
    created_at: datetime

    class Config:
        from_attributes = True
