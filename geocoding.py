"""Forward geocoding and driving distances via Google Maps."""
import logging
from typing import List, Optional, Sequence, Tuple

from errors import GeocodingFailure
from maps_client import GoogleMapsClient
from schemas import DrivingLeg, GeocodeResult

logger = logging.getLogger(__name__)

GEOCODE_PATH = "/maps/api/geocode/json"
DISTANCE_MATRIX_PATH = "/maps/api/distancematrix/json"

_STATUS_MESSAGES = {
    "OVER_QUERY_LIMIT": "Google Maps API quota exceeded. Please try again later.",
    "REQUEST_DENIED": "Google Maps API request was denied. Please check your API key and billing settings.",
    "INVALID_REQUEST": "Invalid request to Google Maps API. Please check the address format.",
}

_CITY_COMPONENTS = ("locality", "postal_town", "sublocality")


def compose_address(address: str, city: str, state: str, zip_code: str) -> str:
    """Single-line address used for geocoding stored events."""
    return f"{address}, {city}, {state} {zip_code}".strip()


def format_point(latitude: float, longitude: float) -> str:
    return f"{latitude},{longitude}"


def _component(result: dict, types: Sequence[str]) -> Optional[str]:
    for wanted in types:
        for component in result.get("address_components", []):
            if wanted in component.get("types", []):
                return component.get("long_name")
    return None


class GeocodingService:
    def __init__(self, maps: GoogleMapsClient):
        self.maps = maps

    async def geocode(self, location: str) -> Optional[GeocodeResult]:
        """Resolve free text to coordinates.

        Returns None when Google reports ZERO_RESULTS; every other failure
        raises GeocodingFailure.
        """
        data = await self.maps.get_json(GEOCODE_PATH, {"address": location}, api_name="Google Maps")
        status = data.get("status")

        if status == "OK" and data.get("results"):
            result = data["results"][0]
            point = result["geometry"]["location"]
            return GeocodeResult(
                latitude=point["lat"],
                longitude=point["lng"],
                formatted_address=result.get("formatted_address", location),
                city=_component(result, _CITY_COMPONENTS),
                zip=_component(result, ("postal_code",)),
            )

        if status == "ZERO_RESULTS" or (status == "OK" and not data.get("results")):
            logger.info("No geocoding results for %r", location)
            return None

        message = _STATUS_MESSAGES.get(status, f"Google Maps API error: {status}")
        if data.get("error_message"):
            message = f"{message} ({data['error_message']})"
        raise GeocodingFailure(message, status=status)

    async def distance_matrix(
        self,
        origin: Tuple[float, float],
        destinations: List[Tuple[float, float]],
    ) -> List[Optional[DrivingLeg]]:
        """Driving distance/duration from origin to each destination, in one request.

        The result is aligned with ``destinations``; elements Google could
        not route come back as None, and so does every element when the whole
        request is refused with a non-OK status. Transport and credential
        errors still raise GeocodingFailure.
        """
        if not destinations:
            return []

        data = await self.maps.get_json(
            DISTANCE_MATRIX_PATH,
            {
                "origins": format_point(*origin),
                "destinations": "|".join(format_point(lat, lon) for lat, lon in destinations),
                "mode": "driving",
            },
            api_name="Google Maps Distance Matrix",
        )
        status = data.get("status")
        if status != "OK":
            logger.warning(
                "Distance Matrix API returned %s for %d destinations, skipping driving info",
                status, len(destinations),
            )
            return [None] * len(destinations)

        rows = data.get("rows") or [{}]
        elements = rows[0].get("elements", [])
        legs: List[Optional[DrivingLeg]] = []
        for index in range(len(destinations)):
            element = elements[index] if index < len(elements) else None
            if not element or element.get("status") != "OK":
                logger.warning(
                    "No driving route to destination %d: %s",
                    index, element.get("status") if element else "missing element",
                )
                legs.append(None)
                continue
            legs.append(DrivingLeg(
                meters=element["distance"]["value"],
                seconds=element["duration"]["value"],
            ))
        return legs
