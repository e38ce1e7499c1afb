from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from ..database import Base


class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, index=True)
    # One assessment per job by convention only.
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    questions = Column(Text, nullable=True)  # JSON string list of question objects
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
