"""Enrolled students. Only the columns the gradebook reads are mapped here."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from gradebook.db.session import Base


class Student(Base):
    __tablename__ = "students"
    __table_args__ = (UniqueConstraint("school_id", "student_code", name="uq_student_school_code"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_code = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    class_name = Column("class", String(50), nullable=False)
    section = Column(String(20), nullable=False)
    roll_number = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="active")  # active | inactive | graduated
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
