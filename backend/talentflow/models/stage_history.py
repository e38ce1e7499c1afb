from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base


class StageHistoryEntry(Base):
    """Audit row for one candidate stage transition. Written once, never updated."""

    __tablename__ = "stage_history"

    id = Column(Integer, primary_key=True, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), nullable=False, index=True)
    previous_stage = Column(String(20), nullable=True)
    new_stage = Column(String(20), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)

    candidate = relationship("Candidate", back_populates="stage_history")
