from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Union
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.config import settings
from app.services.slot_service import all_slot_labels

_KNOWN_LABELS = frozenset(all_slot_labels())


class BookingStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


def to_calendar_day(value: Union[date, datetime, str]) -> date:
    """
    Strips the time of day. Aware datetimes are first converted to the
    configured clinic timezone so the day matches what the clinic sees.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(ZoneInfo(settings.TIMEZONE))
        return value.date()
    if isinstance(value, date):
        return value
    raise ValueError(f"Cannot interpret {value!r} as a calendar day")


class BookingRequest(BaseModel):
    provider_id: str = Field(..., min_length=1)
    requester_id: str = Field(..., min_length=1)
    day: date
    time_slot_label: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("day", mode="before")
    @classmethod
    def normalise_day(cls, value):
        return to_calendar_day(value)

    @field_validator("time_slot_label")
    @classmethod
    def known_slot(cls, value: str) -> str:
        if value not in _KNOWN_LABELS:
            raise ValueError(f"'{value}' is not a bookable slot label")
        return value


class Booking(BaseModel):
    # Stored shape of an appointment; unknown columns are rejected
    model_config = ConfigDict(extra="forbid")

    id: str
    provider_id: str
    requester_id: str
    day: date
    time_slot_label: str
    status: BookingStatus = BookingStatus.SCHEDULED
    metadata: Dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Booking":
        return cls.model_validate(record)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class StatusUpdate(BaseModel):
    status: BookingStatus
    notes: Optional[str] = None
