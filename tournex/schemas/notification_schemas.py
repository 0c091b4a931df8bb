from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class NotificationBase(BaseModel):
    type: str # e.g., "match_reported", "tournament_won", "participant_banned"
    title: str
    message: str
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[int] = None

class NotificationCreate(NotificationBase):
    user_id: int

class NotificationRead(NotificationBase):
    id: int
    user_id: int
    read_status: bool
    created_at: datetime

    class Config:
        from_attributes = True
