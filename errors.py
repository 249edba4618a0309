"""Exceptions raised by the event services and mapped to HTTP responses in main.py."""
from typing import Optional


class EventFinderError(Exception):
    """Base class for errors the API reports to callers."""


class GeocodingFailure(EventFinderError):
    """A Google Maps call failed for a reason other than 'no results'."""

    def __init__(self, message: str, status: Optional[str] = None):
        super().__init__(message)
        self.status = status


class GeocodeUnresolvable(EventFinderError):
    """An event address could not be turned into coordinates."""


class InvalidSchedule(EventFinderError):
    """An update would leave an event with no usable date or an inverted date range."""


class LocationUnresolvable(EventFinderError):
    """A search field (address, zip code or city/state) had no geocoding match."""


class MissingLocationInput(EventFinderError):
    def __init__(self, message: str = "Please provide an address, zip code, or city and state"):
        super().__init__(message)


class EventNotFound(EventFinderError):
    def __init__(self, event_id: int):
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id


class CsvFormatError(EventFinderError):
    pass
