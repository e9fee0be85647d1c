"""Scores per (student, assessment) and the append-only history of their changes."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from gradebook.db.session import Base


class StudentScore(Base):
    __tablename__ = "student_scores"
    __table_args__ = (UniqueConstraint("assessment_id", "student_id", name="uq_student_score_assessment_student"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    score_obtained = Column(Numeric(6, 2, asdecimal=False), nullable=True)  # NULL when absent
    grade_letter = Column(String(10), nullable=True)
    remarks = Column(Text, nullable=True)
    is_absent = Column(Boolean, nullable=False, default=False)
    graded_by = Column(String(64), nullable=True)
    graded_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    assessment = relationship("Assessment")

    @property
    def gradable_score(self):
        """Score that counts toward grading; None when absent or ungraded."""
        if self.is_absent:
            return None
        return self.score_obtained


class GradeHistory(Base):
    """One row per change to an existing StudentScore. Rows are never updated or deleted."""

    __tablename__ = "grade_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_score_id = Column(Integer, ForeignKey("student_scores.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, nullable=False)
    assessment_id = Column(Integer, nullable=False)
    old_score = Column(Numeric(6, 2, asdecimal=False), nullable=True)
    new_score = Column(Numeric(6, 2, asdecimal=False), nullable=True)
    old_grade = Column(String(10), nullable=True)
    new_grade = Column(String(10), nullable=True)
    changed_by = Column(String(64), nullable=True)
    change_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
