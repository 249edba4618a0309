"""Shared fixtures: in-memory SQLite and a fake Google Maps backend."""

import asyncio
import math
import os
import sys
from datetime import date, timedelta

import httpx
import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Keep the module-level engine in db_config off the filesystem
os.environ.setdefault("DATABASE_URL", "sqlite://")

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from db_config import Base, make_engine  # noqa: E402
from event_service import EventService  # noqa: E402
from geo import EARTH_RADIUS_MILES  # noqa: E402
from geocoding import GeocodingService  # noqa: E402
from maps_client import GoogleMapsClient  # noqa: E402
from models_db import EventDB  # noqa: E402
from timezone_service import TimezoneService  # noqa: E402

NYC_10001 = (40.7505, -73.9965)


def run(coro):
    return asyncio.run(coro)


def miles_north(point, miles):
    """A point ``miles`` due north of ``point`` on the same sphere the app uses."""
    lat, lon = point
    return lat + math.degrees(miles / EARTH_RADIUS_MILES), lon


class FakeMaps:
    """Stands in for maps.googleapis.com and records every call."""

    def __init__(self):
        # text -> (lat, lon) for OK, or a status string such as "OVER_QUERY_LIMIT"
        self.geocodes = {}
        self.timezone = {
            "status": "OK",
            "timeZoneId": "UTC",
            "timeZoneName": "Coordinated Universal Time",
            "rawOffset": 0,
            "dstOffset": 0,
        }
        # per-destination statuses for the distance matrix; None means all OK
        self.matrix_statuses = None
        self.matrix_status = "OK"
        self.calls = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        params = dict(request.url.params)
        self.calls.append((path, params))

        if path.endswith("/geocode/json"):
            return httpx.Response(200, json=self._geocode(params["address"]))
        if path.endswith("/timezone/json"):
            return httpx.Response(200, json=self.timezone)
        if path.endswith("/distancematrix/json"):
            return httpx.Response(200, json=self._matrix(params["destinations"].split("|")))
        return httpx.Response(404)

    def _geocode(self, address):
        found = self.geocodes.get(address)
        if found is None:
            return {"status": "ZERO_RESULTS", "results": []}
        if isinstance(found, str):
            return {"status": found, "results": [], "error_message": f"{found} from fake"}
        lat, lon = found
        return {
            "status": "OK",
            "results": [{
                "formatted_address": f"{address}, USA",
                "geometry": {"location": {"lat": lat, "lng": lon}},
                "address_components": [
                    {"long_name": "New York", "types": ["locality", "political"]},
                    {"long_name": "10001", "types": ["postal_code"]},
                ],
            }],
        }

    def _matrix(self, destinations):
        if self.matrix_status != "OK":
            return {"status": self.matrix_status, "rows": []}
        elements = []
        for index, _ in enumerate(destinations):
            status = self.matrix_statuses[index] if self.matrix_statuses else "OK"
            if status != "OK":
                elements.append({"status": status})
                continue
            elements.append({
                "status": "OK",
                "distance": {"text": "", "value": 1000 * (index + 1)},
                "duration": {"text": "", "value": 120 * (index + 1)},
            })
        return {"status": "OK", "rows": [{"elements": elements}]}

    def count(self, suffix):
        return sum(1 for path, _ in self.calls if path.endswith(suffix))

    def addresses(self):
        return [params["address"] for path, params in self.calls if path.endswith("/geocode/json")]

    def client(self, api_key="test-key"):
        http = httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler),
            base_url="https://maps.googleapis.com",
        )
        return GoogleMapsClient(api_key, http_client=http)


@pytest.fixture
def fake_maps():
    return FakeMaps()


@pytest.fixture
def maps_client(fake_maps):
    return fake_maps.client()


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    db = Session()
    yield db
    db.close()


@pytest.fixture
def geocoder(maps_client):
    return GeocodingService(maps_client)


@pytest.fixture
def event_service(session, maps_client, geocoder):
    return EventService(session, geocoder, TimezoneService(maps_client))


@pytest.fixture
def add_event(session):
    """Insert an event row directly, bypassing geocoding."""

    def _add(**overrides):
        fields = {
            "event_date": date.today() + timedelta(days=30),
            "event_time": "3pm - 5pm",
            "event_type": "Concert",
            "address": "1 Main St",
            "city": "New York",
            "state": "NY",
            "zip": "10001",
            "latitude": NYC_10001[0],
            "longitude": NYC_10001[1],
        }
        fields.update(overrides)
        event = EventDB(**fields)
        session.add(event)
        session.commit()
        return event

    return _add
