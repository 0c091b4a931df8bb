from datetime import datetime, timezone
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

DataT = TypeVar("DataT")


class Envelope(BaseModel, Generic[DataT]):
    """Success wrapper returned by every mutating endpoint."""
    success: bool = True
    message: str = ""
    data: Optional[DataT] = None


class ErrorDetail(BaseModel):
    field: Optional[str] = None
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    errors: List[ErrorDetail] = []


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Columns hold naive UTC; aware inputs are converted, naive ones are taken as UTC
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
