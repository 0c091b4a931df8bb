from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from tournex.models.enums import ALLOWED_MAX_PARTICIPANTS
from tournex.schemas.common import Pagination, to_naive_utc


def _check_capacity(v):
    if v is not None and v not in ALLOWED_MAX_PARTICIPANTS:
        raise ValueError(f"max_participants must be one of {list(ALLOWED_MAX_PARTICIPANTS)}")
    return v


class TournamentBase(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    game: str = Field(..., min_length=1)
    description: Optional[str] = Field(None, max_length=1000)
    prize: Optional[str] = None
    rules: Optional[str] = Field(None, max_length=5000)
    max_participants: int
    registration_start: datetime
    registration_end: datetime
    start_date: datetime
    end_date: datetime


class TournamentCreate(TournamentBase):
    @field_validator("max_participants")
    @classmethod
    def check_capacity(cls, v):
        return _check_capacity(v)

    @field_validator("registration_start", "registration_end", "start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v):
        return to_naive_utc(v)


class TournamentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    game: Optional[str] = None
    description: Optional[str] = Field(None, max_length=1000)
    prize: Optional[str] = None
    rules: Optional[str] = Field(None, max_length=5000)
    max_participants: Optional[int] = None
    registration_start: Optional[datetime] = None
    registration_end: Optional[datetime] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("max_participants")
    @classmethod
    def check_capacity(cls, v):
        return _check_capacity(v)

    @field_validator("registration_start", "registration_end", "start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v):
        return to_naive_utc(v)


class OpenRegistrationRequest(BaseModel):
    """Optional replacement registration window."""
    registration_start: Optional[datetime] = None
    registration_end: Optional[datetime] = None

    @field_validator("registration_start", "registration_end")
    @classmethod
    def normalize_dates(cls, v):
        return to_naive_utc(v)


class RoundRequest(BaseModel):
    round: int = Field(..., ge=1, description="Round number the operation targets")


class TournamentRead(TournamentBase):
    id: int
    current_participants: int
    status: str
    bracket_generated: bool
    owner_id: int
    created_by_id: int
    winner_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TournamentList(BaseModel):
    tournaments: List[TournamentRead]
    pagination: Pagination
