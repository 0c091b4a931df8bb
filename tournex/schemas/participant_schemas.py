from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from .user_schemas import UserSummary

class ParticipantRead(BaseModel):
    id: int
    tournament_id: int
    user_id: int
    status: str
    wins: int
    losses: int
    created_at: Optional[datetime] = None
    user: Optional[UserSummary] = None

    class Config:
        from_attributes = True
