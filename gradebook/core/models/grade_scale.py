from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB

from gradebook.db.session import Base


class GradeScale(Base):
    """
    School-configurable mapping from percentage bands to grade labels.

    grade_labels is an ordered list of {min, max, grade, gpa?, description?}.
    At most one scale per school has is_default set.
    """

    __tablename__ = "grade_scales"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    scale_name = Column(Text, nullable=False)
    scale_name_bn = Column(Text, nullable=True)
    scale_type = Column(String(20), nullable=False)  # letter | gpa | percentage
    grade_labels = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
