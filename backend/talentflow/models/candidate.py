from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base


class Candidate(Base):
    __tablename__ = "candidates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), index=True, nullable=False)
    stage = Column(String(20), nullable=False, default="applied", index=True)  # applied | screening | interview | offer | hired
    # Non-owning reference; jobs are archived, never deleted.
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=True, index=True)

    job = relationship("Job", back_populates="candidates")
    stage_history = relationship("StageHistoryEntry", back_populates="candidate")
    notes = relationship("Note", back_populates="candidate")
