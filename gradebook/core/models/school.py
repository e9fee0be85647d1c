from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from gradebook.db.session import Base


class School(Base):
    """
    Tenant root. Every other table carries school_id pointing here and every
    query issued by the service layer filters on it.
    """

    __tablename__ = "schools"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    code = Column(String(20), unique=True, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    subjects = relationship("Subject", back_populates="school", cascade="all, delete-orphan")
