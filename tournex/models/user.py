from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from tournex.core.database import Base, utcnow
from tournex.models.enums import UserRole

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String)
    email = Column(String, unique=True, index=True)
    avatar_url = Column(String, nullable=True)
    role = Column(String, default=UserRole.PLAYER.value, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    participations = relationship("Participant", back_populates="user")
    notifications = relationship("Notification", back_populates="user")
