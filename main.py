from fastapi import FastAPI, Depends, File, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional
import hmac
import logging

from sqlalchemy.orm import Session

from bulk_import import BulkImporter
from csv_parser import parse_csv
from db_config import Base, engine, get_db
from errors import (
    CsvFormatError,
    EventNotFound,
    GeocodeUnresolvable,
    GeocodingFailure,
    InvalidSchedule,
    LocationUnresolvable,
    MissingLocationInput,
)
from event_service import EventService
from geocoding import GeocodingService
from maps_client import GoogleMapsClient
from schemas import (
    AdminLogin,
    Event,
    EventCreate,
    EventUpdate,
    GeocodeTestRequest,
    LocationQuery,
    RankedResult,
)
from search_service import SearchService
from settings import get_settings
from timezone_service import TimezoneService
import models_db  # noqa: F401  registers the events table on Base

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    Base.metadata.create_all(bind=engine)
    app.state.maps = GoogleMapsClient(settings.google_maps_api_key, timeout=settings.maps_timeout_seconds)
    if not app.state.maps.configured:
        logger.warning("GOOGLE_MAPS_API_KEY is not set; geocoding requests will fail")
    try:
        yield
    finally:
        await app.state.maps.aclose()


app = FastAPI(title="Events API", version="1.0.0", lifespan=lifespan)


# Error translation
def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc)})


@app.exception_handler(MissingLocationInput)
@app.exception_handler(LocationUnresolvable)
@app.exception_handler(GeocodeUnresolvable)
@app.exception_handler(InvalidSchedule)
@app.exception_handler(CsvFormatError)
async def bad_request_handler(request: Request, exc: Exception):
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return _error(400, exc)


@app.exception_handler(EventNotFound)
async def not_found_handler(request: Request, exc: EventNotFound):
    return _error(404, exc)


@app.exception_handler(GeocodingFailure)
async def upstream_failure_handler(request: Request, exc: GeocodingFailure):
    logger.error("Upstream Google Maps failure on %s %s: %s", request.method, request.url.path, exc)
    return _error(502, exc)


# Dependencies
def get_maps_client(request: Request) -> GoogleMapsClient:
    return request.app.state.maps


def get_geocoder(maps: GoogleMapsClient = Depends(get_maps_client)) -> GeocodingService:
    return GeocodingService(maps)


def get_event_service(
    db: Session = Depends(get_db),
    maps: GoogleMapsClient = Depends(get_maps_client),
) -> EventService:
    return EventService(db, GeocodingService(maps), TimezoneService(maps))


def get_search_service(
    events: EventService = Depends(get_event_service),
) -> SearchService:
    settings = get_settings()
    return SearchService(
        events,
        events.geocoder,
        events.timezones,
        candidate_limit=settings.search_candidate_limit,
        result_limit=settings.search_result_limit,
    )


# API Endpoints
@app.get("/")
async def root():
    return {
        "message": "Events API - find upcoming events near you",
        "version": "1.0.0",
        "endpoints": [
            "/events - Upcoming events",
            "/events/type/{event_type} - Upcoming events of one type",
            "/events/search - Closest upcoming events to an address, zip or city",
            "/events/admin/all - Every stored event",
            "/health - Health check"
        ]
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/events", response_model=List[Event])
async def list_events(
    lat: Optional[float] = Query(None, description="Latitude of the viewer"),
    lon: Optional[float] = Query(None, description="Longitude of the viewer"),
    events: EventService = Depends(get_event_service),
):
    """Upcoming events, judged in the viewer's timezone when lat/lon are given"""
    return await events.list_upcoming(lat, lon)


@app.get("/events/type/{event_type}", response_model=List[Event])
async def list_events_by_type(
    event_type: str,
    lat: Optional[float] = Query(None, description="Latitude of the viewer"),
    lon: Optional[float] = Query(None, description="Longitude of the viewer"),
    events: EventService = Depends(get_event_service),
):
    return await events.list_upcoming_by_type(event_type, lat, lon)


@app.post("/events/search", response_model=List[RankedResult])
async def search_events(query: LocationQuery, search: SearchService = Depends(get_search_service)):
    """
    Closest upcoming events to an address, zip code, or city and state.

    Results are ordered by straight-line distance and carry driving
    distance/duration where Google could route them.
    """
    logger.info("Search request received: %s", query.model_dump(exclude_none=True))
    return await search.search(query)


@app.get("/events/admin/all", response_model=List[Event])
def list_all_events(events: EventService = Depends(get_event_service)):
    return events.list_all_for_admin()


@app.post("/events/admin/login")
async def admin_login(body: AdminLogin):
    admin_password = get_settings().admin_password
    if not admin_password:
        return JSONResponse(status_code=500, content={"error": "Admin password not configured"})
    if hmac.compare_digest(body.password.encode(), admin_password.encode()):
        return {"success": True}
    return JSONResponse(status_code=401, content={"error": "Invalid password"})


@app.post("/events/admin/bulk-upload", status_code=201)
async def bulk_upload(
    csv_file: Optional[UploadFile] = File(None, alias="csvFile"),
    events: EventService = Depends(get_event_service),
):
    if csv_file is None:
        return JSONResponse(status_code=400, content={"error": "No CSV file provided"})

    drafts = parse_csv(await csv_file.read())
    if not drafts:
        return JSONResponse(status_code=400, content={"error": "CSV file contains no events"})

    result = await BulkImporter(events, events.geocoder).validate_and_insert(drafts)
    if not result.success:
        return JSONResponse(
            status_code=400,
            content={
                "error": "Validation errors found",
                "details": [error.model_dump() for error in result.errors],
            },
        )
    return {
        "success": True,
        "message": f"Successfully created {len(result.inserted)} events",
        "events": [event.model_dump(mode="json") for event in result.inserted],
    }


@app.post("/events/update-geocoding")
async def update_geocoding(events: EventService = Depends(get_event_service)):
    """Fill in coordinates for stored events that are missing them"""
    updated = await events.backfill_coordinates()
    return {"message": "Geocoding update completed", "updated": updated}


@app.post("/events/test-geocoding")
async def test_geocoding(body: GeocodeTestRequest, geocoder: GeocodingService = Depends(get_geocoder)):
    if not body.address.strip():
        return JSONResponse(status_code=400, content={"error": "Address is required"})
    result = await geocoder.geocode(body.address)
    if result is None:
        return JSONResponse(status_code=400, content={"success": False, "error": "Could not geocode the address"})
    return {
        "success": True,
        "address": result.formatted_address,
        "coordinates": {"latitude": result.latitude, "longitude": result.longitude},
        "city": result.city,
        "zip": result.zip,
    }


@app.get("/events/health/maps-api")
async def maps_api_health(geocoder: GeocodingService = Depends(get_geocoder)):
    """Check that the Google Maps key works by geocoding a known city"""
    try:
        result = await geocoder.geocode("New York, NY")
    except GeocodingFailure as e:
        return JSONResponse(
            status_code=500,
            content={"status": "error", "googleMapsApiConfigured": False, "error": str(e)},
        )
    return {
        "status": "ok",
        "googleMapsApiConfigured": True,
        "testResult": "success" if result else "failed",
    }


@app.post("/events", response_model=Event, status_code=201)
async def create_event(body: EventCreate, events: EventService = Depends(get_event_service)):
    return await events.insert(body)


@app.get("/events/{event_id}", response_model=Event)
def get_event(event_id: int, events: EventService = Depends(get_event_service)):
    return events.get(event_id)


@app.put("/events/{event_id}", response_model=Event)
async def update_event(event_id: int, body: EventUpdate, events: EventService = Depends(get_event_service)):
    return await events.update(event_id, body)


@app.delete("/events/{event_id}")
def delete_event(event_id: int, events: EventService = Depends(get_event_service)):
    events.delete(event_id)
    return {"success": True}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
