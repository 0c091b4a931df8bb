from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from tournex.core.database import Base, utcnow
from tournex.models.enums import TournamentStatus

class Tournament(Base):
    __tablename__ = "tournaments"
    __table_args__ = (
        CheckConstraint("current_participants <= max_participants", name="ck_tournament_capacity"),
        CheckConstraint("current_participants >= 0", name="ck_tournament_participants_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    game = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    prize = Column(String, nullable=True)
    rules = Column(Text, nullable=True)
    max_participants = Column(Integer, nullable=False)
    current_participants = Column(Integer, default=0, nullable=False)
    status = Column(String, default=TournamentStatus.PENDING.value, nullable=False, index=True)
    registration_start = Column(DateTime, nullable=False)
    registration_end = Column(DateTime, nullable=False)
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=False)
    bracket_generated = Column(Boolean, default=False, nullable=False)
    # The owner moderates the bracket; created_by is kept for audit only
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    winner_id = Column(
        Integer,
        ForeignKey("participants.id", use_alter=True, name="fk_tournament_winner"),
        nullable=True,
    )
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    owner = relationship("User", foreign_keys=[owner_id])
    created_by = relationship("User", foreign_keys=[created_by_id])
    winner = relationship("Participant", foreign_keys=[winner_id], post_update=True)
    participants = relationship(
        "Participant",
        back_populates="tournament",
        foreign_keys="Participant.tournament_id",
        order_by="Participant.id",
    )
    matches = relationship(
        "Match",
        back_populates="tournament",
        order_by="Match.id",
    )
