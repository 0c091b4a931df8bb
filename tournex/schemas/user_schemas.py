from datetime import datetime
from typing import Optional

from pydantic import BaseModel

class UserRead(BaseModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class UserSummary(BaseModel):
    id: int
    name: Optional[str] = None
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True
