"""Location search: geocode the query, rank nearby upcoming events, add driving info."""
import logging
from typing import List, Optional, Tuple

from errors import LocationUnresolvable, MissingLocationInput
from event_service import EventService
from geocoding import GeocodingService
from schemas import Event, LocationQuery, RankedResult
from settings import SEARCH_CANDIDATE_LIMIT, SEARCH_RESULT_LIMIT
from timezone_service import TimezoneService

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def pick_location_text(query: LocationQuery) -> Tuple[str, str]:
    """Choose the one field to geocode: address, then zip, then city and state.

    Returns (text, description) where description names the field for error messages.
    """
    address, zip_code = _clean(query.address), _clean(query.zip)
    city, state = _clean(query.city), _clean(query.state)
    if address:
        return address, "address"
    if zip_code:
        return zip_code, "zip code"
    if city and state:
        return f"{city}, {state}", "city and state"
    raise MissingLocationInput()


class SearchService:
    def __init__(
        self,
        events: EventService,
        geocoder: GeocodingService,
        timezones: TimezoneService,
        candidate_limit: int = SEARCH_CANDIDATE_LIMIT,
        result_limit: int = SEARCH_RESULT_LIMIT,
    ):
        self.events = events
        self.geocoder = geocoder
        self.timezones = timezones
        self.candidate_limit = candidate_limit
        self.result_limit = result_limit

    async def search(self, query: LocationQuery) -> List[RankedResult]:
        text, field = pick_location_text(query)

        origin = await self.geocoder.geocode(text)
        if origin is None:
            raise LocationUnresolvable(f"Could not geocode the provided {field}")

        tz_id = await self.timezones.timezone_id(origin.latitude, origin.longitude)
        nearest = self.events.nearest_upcoming(
            origin.latitude,
            origin.longitude,
            tz_id,
            candidate_limit=self.candidate_limit,
            result_limit=self.result_limit,
        )
        if not nearest:
            return []

        legs = await self.geocoder.distance_matrix(
            (origin.latitude, origin.longitude),
            [(event.latitude, event.longitude) for event, _ in nearest],
        )

        results = []
        for (event, miles), leg in zip(nearest, legs):
            result = RankedResult(event=Event.model_validate(event), distance_miles=miles)
            if leg is not None:
                result.driving_meters = leg.meters
                result.driving_seconds = leg.seconds
            results.append(result)

        logger.info("Search for %s %r (%s) found %d events", field, text, tz_id, len(results))
        return results
