"""
Shared request/response shapes: date ranges and the provenance-tagged envelope
"""
from datetime import datetime, timedelta
from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator

from app.utils.helpers import parse_datetime, utcnow

T = TypeVar("T")

# Where a client response came from: the platform itself, or the fixed fallback set
DataSource = Literal["live", "fallback"]


class DateRange(BaseModel):
    """Inclusive [start, end] window, always timezone-aware UTC"""
    start: datetime
    end: datetime

    @field_validator("start", "end", mode="before")
    @classmethod
    def _coerce_utc(cls, value):
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValueError(f"invalid datetime: {value!r}")
        return parsed

    @model_validator(mode="after")
    def _check_order(self):
        if self.start > self.end:
            raise ValueError("start must not be after end")
        return self

    @classmethod
    def last_days(cls, days: int, end: Optional[datetime] = None) -> "DateRange":
        """Trailing window of `days` days ending at `end` (default: now)"""
        end = end or utcnow()
        return cls(start=end - timedelta(days=days), end=end)

    def contains(self, moment: Optional[datetime]) -> bool:
        return moment is not None and self.start <= moment <= self.end


class ApiResponse(BaseModel, Generic[T]):
    """
    Envelope returned by every connector read operation.

    `source` tells live platform data apart from the fixed fallback set;
    fallback responses also carry `success=False` and the triggering error.
    """
    data: T
    success: bool = True
    source: DataSource = "live"
    timestamp: datetime = Field(default_factory=utcnow)
    error: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.source == "live"
