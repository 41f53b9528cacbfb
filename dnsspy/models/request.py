"""
Pydantic model for tail session requests
"""

import re
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from dnsspy.config import DEFAULT_MAX_RETRIES, DEFAULT_OVERLAP_SECONDS, DEFAULT_POLL_INTERVAL
from dnsspy.errors import ValidationError


def to_epoch_ms(value: datetime) -> int:
    """Convert an aware datetime to CloudWatch epoch milliseconds"""
    return int(value.timestamp() * 1000)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TailRequest(BaseModel):
    """
    Caller-supplied description of one tailing session.

    The request is immutable for the lifetime of the session. ``end_time=None``
    means the window is unbounded and keeps advancing to "now".
    """
    model_config = ConfigDict(frozen=True)

    source: str = Field(..., min_length=1, description="Log group name to query")
    stream_hint: Optional[str] = Field(default=None, description="Log stream name prefix to narrow the query")
    start_time: datetime = Field(default_factory=_utc_now, description="Inclusive lower bound of the first window")
    end_time: Optional[datetime] = Field(default=None, description="Exclusive upper bound, None for unbounded")
    follow: bool = Field(default=False, description="Keep polling for new records once the window is exhausted")
    include_pattern: Optional[str] = Field(default=None, description="Regular expression the body must contain")
    exclude_pattern: Optional[str] = Field(default=None, description="Regular expression the body must not contain")
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0, description="Seconds between query permits")
    overlap: float = Field(default=DEFAULT_OVERLAP_SECONDS, ge=0, description="Seconds consecutive follow windows overlap")
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0, description="Retry ceiling for transient query errors")

    @field_validator('source')
    @classmethod
    def validate_source(cls, v):
        """Reject whitespace-only log group names"""
        if not v.strip():
            raise ValueError('source cannot be empty')
        return v

    @field_validator('stream_hint')
    @classmethod
    def validate_stream_hint(cls, v):
        if v is not None and not v.strip():
            return None
        return v

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_timezone(cls, v):
        """Naive datetimes are taken as UTC"""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator('include_pattern', 'exclude_pattern')
    @classmethod
    def validate_pattern(cls, v):
        """Patterns must compile; empty strings impose no constraint"""
        if not v:
            return None
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid regular expression {v!r}: {e}")
        return v

    @model_validator(mode='after')
    def validate_window(self):
        if self.end_time is not None and self.start_time > self.end_time:
            raise ValueError('start_time must not be after end_time')
        return self

    @property
    def start_ms(self) -> int:
        return to_epoch_ms(self.start_time)

    @property
    def end_ms(self) -> Optional[int]:
        if self.end_time is None:
            return None
        return to_epoch_ms(self.end_time)

    @property
    def overlap_ms(self) -> int:
        return int(self.overlap * 1000)

    @classmethod
    def create(cls, **fields) -> 'TailRequest':
        """
        Build a request, translating pydantic failures into dnsspy's ValidationError

        Raises:
            ValidationError: If any field is invalid or the time range is inverted
        """
        try:
            return cls(**fields)
        except PydanticValidationError as e:
            details = []
            for error in e.errors():
                location = '.'.join(str(part) for part in error['loc'])
                if location:
                    details.append(f"{location}: {error['msg']}")
                else:
                    details.append(error['msg'])
            raise ValidationError(f"Invalid tail request: {'; '.join(details)}") from e
