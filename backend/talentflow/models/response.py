from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text

from ..database import Base


class Response(Base):
    __tablename__ = "responses"

    id = Column(Integer, primary_key=True, index=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), nullable=True, index=True)
    answers = Column(Text, nullable=True)  # JSON object: question id -> answer
    submitted_at = Column(DateTime(timezone=True), nullable=True)
