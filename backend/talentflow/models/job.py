from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(150), nullable=False, index=True)
    # Uniqueness is checked by the writer before the request is sent, not here.
    slug = Column(String(180), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="open", index=True)  # open | closed | draft | archived
    # Board position. Only the reorder operation rewrites it, and always for every sibling at once.
    order = Column(Integer, nullable=False, default=0, index=True)
    tags = Column(Text, nullable=True)  # JSON string list
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    candidates = relationship("Candidate", back_populates="job")
