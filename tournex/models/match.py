from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from tournex.core.database import Base, utcnow
from tournex.models.enums import MatchStatus

class Match(Base):
    __tablename__ = "matches"
    __table_args__ = (
        # Also guards against two concurrent phase generations for the same round
        UniqueConstraint("tournament_id", "round", "match_number", name="uq_match_round_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False, index=True)
    round = Column(Integer, nullable=False)
    match_number = Column(Integer, nullable=False)
    participant1_id = Column(Integer, ForeignKey("participants.id"), nullable=True, index=True)
    participant2_id = Column(Integer, ForeignKey("participants.id"), nullable=True, index=True)
    winner_id = Column(Integer, ForeignKey("participants.id"), nullable=True)
    participant1_score = Column(Integer, nullable=True)
    participant2_score = Column(Integer, nullable=True)
    status = Column(String, default=MatchStatus.PENDING.value, nullable=False)
    is_bye = Column(Boolean, default=False, nullable=False)
    # Forward pointer to the match in round + 1 the winner advances into
    next_match_id = Column(Integer, ForeignKey("matches.id"), nullable=True)
    referee_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    notes = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    # Every UPDATE is a compare-and-set on version; a lost race raises StaleDataError
    __mapper_args__ = {"version_id_col": version}

    tournament = relationship("Tournament", back_populates="matches")
    participant1 = relationship("Participant", foreign_keys=[participant1_id])
    participant2 = relationship("Participant", foreign_keys=[participant2_id])
    winner = relationship("Participant", foreign_keys=[winner_id])
    next_match = relationship("Match", remote_side=[id], foreign_keys=[next_match_id])
    referee = relationship("User", foreign_keys=[referee_id])
    reports = relationship(
        "MatchReport",
        back_populates="match",
        order_by="MatchReport.id",
        cascade="all, delete-orphan",
    )

    @property
    def participant_ids(self):
        return [pid for pid in (self.participant1_id, self.participant2_id) if pid is not None]

    def opponent_of(self, participant_id: int):
        if participant_id == self.participant1_id:
            return self.participant2_id
        if participant_id == self.participant2_id:
            return self.participant1_id
        return None
