from pydantic import BaseModel
from typing import Optional

class TokenData(BaseModel):
    # 'sub' carries the user id issued by the auth service
    user_id: int
    role: Optional[str] = None
