from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

class ScorePair(BaseModel):
    participant1_score: int = Field(..., ge=0)
    participant2_score: int = Field(..., ge=0)

class MatchResultRequest(BaseModel):
    """Payload shared by first reports and corrective edits."""
    winner_id: int = Field(..., description="Participant id of the declared winner")
    score: ScorePair
    notes: Optional[str] = Field(None, max_length=1000)

class ValidateReportRequest(BaseModel):
    validated: Optional[bool] = None
    disputed: bool = False
    dispute_reason: Optional[str] = Field(None, max_length=500)

class MatchRead(BaseModel):
    id: int
    tournament_id: int
    round: int
    match_number: int
    participant1_id: Optional[int] = None
    participant2_id: Optional[int] = None
    winner_id: Optional[int] = None
    participant1_score: Optional[int] = None
    participant2_score: Optional[int] = None
    status: str
    is_bye: bool
    next_match_id: Optional[int] = None
    referee_id: Optional[int] = None
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class MatchReportRead(BaseModel):
    id: int
    match_id: int
    reported_by_id: int
    winner_id: int
    participant1_score: int
    participant2_score: int
    notes: Optional[str] = None
    validated: bool
    validated_by_id: Optional[int] = None
    validated_at: Optional[datetime] = None
    disputed: bool
    dispute_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class MatchDetail(BaseModel):
    match: MatchRead
    report: Optional[MatchReportRead] = None
