"""Pydantic models for request and response bodies."""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, model_validator


class Event(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_date: Optional[date] = None
    event_time: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    event_type: str
    address: str
    address2: Optional[str] = None
    city: str
    state: str
    zip: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def schedule_problem(
    event_date: Optional[date],
    event_time: Optional[str],
    start_date: Optional[date],
    end_date: Optional[date],
) -> Optional[str]:
    """First rule a schedule breaks, or None when it is usable."""
    has_range = start_date is not None and end_date is not None
    if not has_range and event_date is None:
        return "either event_date or both start_date and end_date are required"
    if (start_date is None) != (end_date is None):
        return "start_date and end_date must be provided together"
    if has_range and end_date < start_date:
        return "end_date must be on or after start_date"
    if not has_range and not (event_time or "").strip():
        return "event_time is required for single-day events"
    return None


class EventCreate(BaseModel):
    event_date: Optional[date] = None
    event_time: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    event_type: str
    address: str
    address2: Optional[str] = None
    city: str
    state: str
    zip: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @model_validator(mode="after")
    def check_schedule(self):
        problem = schedule_problem(self.event_date, self.event_time, self.start_date, self.end_date)
        if problem:
            raise ValueError(problem)
        return self


class EventUpdate(BaseModel):
    """Partial update; fields left out (or null) keep their stored value."""

    event_date: Optional[date] = None
    event_time: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    event_type: Optional[str] = None
    address: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def supplied_fields(self) -> dict:
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}


class LocationQuery(BaseModel):
    address: Optional[str] = None
    zip: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None


class GeocodeResult(BaseModel):
    latitude: float
    longitude: float
    formatted_address: str
    city: Optional[str] = None
    zip: Optional[str] = None


class TimezoneResult(BaseModel):
    time_zone_id: str
    time_zone_name: Optional[str] = None
    raw_offset: int = 0
    dst_offset: int = 0


class DrivingLeg(BaseModel):
    meters: int
    seconds: int


class RankedResult(BaseModel):
    event: Event
    distance_miles: float
    driving_meters: Optional[int] = None
    driving_seconds: Optional[int] = None


class EventDraft(BaseModel):
    """One candidate row of a bulk import, as raw text."""

    event_date: str = ""
    event_time: str = ""
    event_type: str = ""
    address: str = ""
    address2: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    start_date: str = ""
    end_date: str = ""


class BulkRowError(BaseModel):
    row: int
    address: str
    error: str


class BulkImportResult(BaseModel):
    success: bool
    inserted: List[Event] = []
    errors: List[BulkRowError] = []


class AdminLogin(BaseModel):
    password: str = ""


class GeocodeTestRequest(BaseModel):
    address: str = ""
