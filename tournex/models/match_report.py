from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from tournex.core.database import Base, utcnow

class MatchReport(Base):
    __tablename__ = "match_reports"

    id = Column(Integer, primary_key=True, index=True)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False, index=True)
    reported_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    winner_id = Column(Integer, ForeignKey("participants.id"), nullable=False)
    participant1_score = Column(Integer, nullable=False)
    participant2_score = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)
    validated = Column(Boolean, default=False, nullable=False)
    validated_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    validated_at = Column(DateTime, nullable=True)
    disputed = Column(Boolean, default=False, nullable=False)
    dispute_reason = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    match = relationship("Match", back_populates="reports")
    reported_by = relationship("User", foreign_keys=[reported_by_id])
    validated_by = relationship("User", foreign_keys=[validated_by_id])
