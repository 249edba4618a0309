"""Single-day vs. multi-day schedules, resolved once per stored row."""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

from timezone_service import is_range_active, is_upcoming


@dataclass(frozen=True)
class SingleOccurrence:
    date: date
    time_text: str


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date


EventSchedule = Union[SingleOccurrence, DateRange]


def schedule_for(row) -> Optional[EventSchedule]:
    # Migrated rows can carry both shapes; the range wins.
    if row.start_date is not None and row.end_date is not None:
        return DateRange(row.start_date, row.end_date)
    if row.event_date is not None:
        return SingleOccurrence(row.event_date, row.event_time or "")
    return None


def is_active(schedule: Optional[EventSchedule], tz_id: str, now: datetime) -> bool:
    if isinstance(schedule, DateRange):
        return is_range_active(schedule.start, schedule.end, now.date())
    if isinstance(schedule, SingleOccurrence):
        return is_upcoming(schedule.date, schedule.time_text, tz_id, now=now)
    return False
