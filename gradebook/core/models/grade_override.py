"""Grade overrides: teacher requests, admin approves. Rejection deletes the row."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.orm import relationship

from gradebook.core.enums import OverrideStatus
from gradebook.db.session import Base


class GradeOverride(Base):
    __tablename__ = "grade_overrides"
    # One override per (student, subject, term). NULL term_id never collides in a
    # plain unique constraint, so the no-term case gets its own partial index.
    __table_args__ = (
        UniqueConstraint("school_id", "student_id", "subject_id", "term_id", name="uq_grade_override_term"),
        Index(
            "uq_grade_override_no_term",
            "school_id",
            "student_id",
            "subject_id",
            unique=True,
            postgresql_where=text("term_id IS NULL"),
            sqlite_where=text("term_id IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False)
    term_id = Column(Integer, ForeignKey("academic_terms.id"), nullable=True)
    override_grade = Column(String(10), nullable=False)
    reason = Column(Text, nullable=False)
    reason_bn = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=True)
    approved_by = Column(String(64), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    subject = relationship("Subject")

    @property
    def status(self) -> OverrideStatus:
        if self.approved_by is None:
            return OverrideStatus.pending
        return OverrideStatus.approved


class GradeOverrideAuditLog(Base):
    """Lifecycle trail for overrides: REQUESTED, UPDATED, APPROVED, REJECTED.

    override_id is not a foreign key so the trail outlives a rejected (deleted) override.
    """

    __tablename__ = "grade_override_audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    override_id = Column(Integer, nullable=False, index=True)
    student_id = Column(Integer, nullable=False)
    subject_id = Column(Integer, nullable=False)
    term_id = Column(Integer, nullable=True)
    action = Column(String(20), nullable=False)
    override_grade = Column(String(10), nullable=True)
    performed_by = Column(String(64), nullable=True)
    performed_by_role = Column(String(50), nullable=True)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
