"""Timezone lookup and the 'is this event still upcoming' checks."""
import logging
import re
import time as _time
from datetime import date, datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

from errors import GeocodingFailure
from maps_client import GoogleMapsClient
from schemas import TimezoneResult
from settings import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)

TIMEZONE_PATH = "/maps/api/timezone/json"

# Events whose time text we cannot read stay visible rather than silently disappearing.
UNPARSABLE_TIME_IS_UPCOMING = True

_START_TIME_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm|a|p)?")


class TimezoneService:
    def __init__(self, maps: GoogleMapsClient):
        self.maps = maps

    async def resolve_timezone(self, latitude: float, longitude: float) -> Optional[TimezoneResult]:
        """IANA timezone for a point, or None so the caller can fall back to UTC."""
        if not self.maps.configured:
            logger.warning("Google Maps API key not found, using UTC as fallback")
            return None

        try:
            data = await self.maps.get_json(
                TIMEZONE_PATH,
                {"location": f"{latitude},{longitude}", "timestamp": int(_time.time())},
                api_name="Google Time Zone",
            )
        except GeocodingFailure as e:
            logger.warning("Timezone lookup failed for %s,%s: %s", latitude, longitude, e)
            return None

        if data.get("status") != "OK":
            logger.warning("Timezone API error: %s %s", data.get("status"), data.get("errorMessage", ""))
            return None

        return TimezoneResult(
            time_zone_id=data["timeZoneId"],
            time_zone_name=data.get("timeZoneName"),
            raw_offset=data.get("rawOffset", 0),
            dst_offset=data.get("dstOffset", 0),
        )

    async def timezone_id(self, latitude: float, longitude: float) -> str:
        result = await self.resolve_timezone(latitude, longitude)
        return result.time_zone_id if result else DEFAULT_TIMEZONE


def now_in_timezone(tz_id: str) -> datetime:
    """Current wall-clock time in ``tz_id``, as a naive datetime."""
    return datetime.now(ZoneInfo(tz_id)).replace(tzinfo=None)


def today_in_timezone(tz_id: str) -> date:
    return now_in_timezone(tz_id).date()


def parse_event_start(event_time: str) -> Optional[time]:
    """Start of a free-text range such as "3pm - 5pm", "4-6pm", "5p-7p" or "12-2pm".

    A marker on the leading number wins; otherwise any "p" in the text
    means PM, which covers ranges where only the end time is marked.
    """
    text = (event_time or "").lower().strip()
    match = _START_TIME_RE.match(text)
    if not match:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    marker = match.group(3)
    is_pm = "p" in marker if marker else ("pm" in text or "p" in text)

    if is_pm and hour < 12:
        hour += 12
    elif not is_pm and hour == 12:
        hour = 0

    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def is_upcoming(event_date: date, event_time: str, tz_id: str, now: Optional[datetime] = None) -> bool:
    """True if the event's start is strictly after ``now`` in ``tz_id``."""
    try:
        start = parse_event_start(event_time)
        if start is None:
            logger.warning("Could not parse event time %r, defaulting to show event", event_time)
            return UNPARSABLE_TIME_IS_UPCOMING

        if now is None:
            now = now_in_timezone(tz_id)
        return datetime.combine(event_date, start) > now
    except Exception:
        logger.exception("Error checking if event on %s %r is in the future", event_date, event_time)
        return UNPARSABLE_TIME_IS_UPCOMING


def is_range_active(start_date: date, end_date: date, today: date) -> bool:
    return start_date <= today <= end_date
