"""
Pydantic schemas for host availability and interviews.
"""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator, model_validator

from workbench.schemas.base import RecordRead
from workbench.utils.time import as_utc


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Offsets are dropped by SQLite, so every stored instant is UTC
    return as_utc(value) if value is not None else None


class HostAvailabilityCreate(BaseModel):
    start_time: datetime
    end_time: datetime
    is_available: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _to_utc(value)

    @model_validator(mode="after")
    def _check_window(self) -> "HostAvailabilityCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class HostAvailabilityUpdate(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    is_available: Optional[bool] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _to_utc(value)


class HostAvailabilityRead(RecordRead):
    user_id: UUID
    start_time: datetime
    end_time: datetime
    is_available: bool


class InterviewBook(BaseModel):
    """Booking request. end_time defaults to start_time + interviewDuration."""

    application_id: UUID
    campaign_phase_id: UUID
    host_id: UUID
    start_time: datetime
    end_time: Optional[datetime] = None
    meeting_link: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _to_utc(value)


class ScheduledInterviewRead(RecordRead):
    application_id: UUID
    campaign_phase_id: UUID
    host_id: UUID
    applicant_id: UUID
    start_time: datetime
    end_time: datetime
    meeting_link: Optional[str] = None
    status: str


class TimeSlot(BaseModel):
    host_id: UUID
    start_time: datetime
    end_time: datetime


class AvailableSlotsQuery(BaseModel):
    campaign_phase_id: UUID
    day: date


class AvailableSlots(BaseModel):
    campaign_phase_id: UUID
    day: date
    slots: List[TimeSlot]
