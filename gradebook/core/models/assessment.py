"""Assessments (gradable events) and their optional scored components."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from gradebook.db.session import Base


class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    term_id = Column(Integer, ForeignKey("academic_terms.id"), nullable=True)
    class_name = Column("class", String(50), nullable=False)
    section = Column(String(20), nullable=False)
    assessment_name = Column(Text, nullable=False)
    assessment_name_bn = Column(Text, nullable=True)
    assessment_type = Column(String(20), nullable=False)  # exam | test | quiz | homework | project
    total_marks = Column(Numeric(6, 2, asdecimal=False), nullable=False)
    weight_percentage = Column(Numeric(5, 2, asdecimal=False), nullable=True)
    date = Column(Date, nullable=True)
    description = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=True)  # identity provider user id
    is_published = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    subject = relationship("Subject")
    components = relationship(
        "AssessmentComponent",
        back_populates="assessment",
        cascade="all, delete-orphan",
        order_by="AssessmentComponent.id",
    )


class AssessmentComponent(Base):
    """Sub-part of an assessment (MCQ, Written, ...). Its weight describes internal composition only."""

    __tablename__ = "assessment_components"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True)
    component_name = Column(Text, nullable=False)
    component_name_bn = Column(Text, nullable=True)
    component_type = Column(String(20), nullable=False)  # MCQ | Written | Practical | Oral
    max_score = Column(Numeric(6, 2, asdecimal=False), nullable=False)
    weight_percentage = Column(Numeric(5, 2, asdecimal=False), nullable=True)
    passing_marks = Column(Numeric(6, 2, asdecimal=False), nullable=True)
    rubric_criteria = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)  # [{criterion, points, description?}]
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    assessment = relationship("Assessment", back_populates="components")
