"""Storage access for events: time-filtered listings, distance ranking and CRUD."""
import logging
from datetime import date, datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from errors import EventNotFound, GeocodeUnresolvable, InvalidSchedule
from geo import distance_expression
from geocoding import GeocodingService, compose_address
from models_db import EventDB
from schedule import is_active, schedule_for
from schemas import EventCreate, EventUpdate, schedule_problem
from settings import DEFAULT_TIMEZONE
from timezone_service import TimezoneService, now_in_timezone

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("address", "city", "state", "zip")
SCHEDULE_FIELDS = ("event_date", "event_time", "start_date", "end_date")
DUPLICATE_KEY = ("event_date", "event_time", "event_type", "address", "city", "state", "zip")


def _upcoming_prefilter(today: date):
    # Coarse date-level cut; the timezone-exact check runs after fetch.
    return or_(EventDB.end_date >= today, EventDB.event_date >= today)


def _schedule_order():
    return (func.coalesce(EventDB.start_date, EventDB.event_date), EventDB.event_time, EventDB.id)


class EventService:
    def __init__(self, db: Session, geocoder: GeocodingService, timezones: TimezoneService):
        self.db = db
        self.geocoder = geocoder
        self.timezones = timezones

    async def reference_timezone(self, latitude: Optional[float] = None, longitude: Optional[float] = None) -> str:
        if latitude is None or longitude is None:
            return DEFAULT_TIMEZONE
        return await self.timezones.timezone_id(latitude, longitude)

    def _active_only(self, rows: Iterable[EventDB], tz_id: str, now: datetime) -> List[EventDB]:
        return [row for row in rows if is_active(schedule_for(row), tz_id, now)]

    async def list_upcoming(
        self,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        event_type: Optional[str] = None,
    ) -> List[EventDB]:
        tz_id = await self.reference_timezone(latitude, longitude)
        now = now_in_timezone(tz_id)

        query = self.db.query(EventDB).filter(_upcoming_prefilter(now.date()))
        if event_type is not None:
            query = query.filter(EventDB.event_type == event_type)
        rows = query.order_by(*_schedule_order()).all()
        return self._active_only(rows, tz_id, now)

    async def list_upcoming_by_type(
        self,
        event_type: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> List[EventDB]:
        return await self.list_upcoming(latitude, longitude, event_type=event_type)

    def list_all_for_admin(self) -> List[EventDB]:
        return self.db.query(EventDB).order_by(EventDB.created_at.desc(), EventDB.id.desc()).all()

    def get(self, event_id: int) -> EventDB:
        event = self.db.get(EventDB, event_id)
        if event is None:
            raise EventNotFound(event_id)
        return event

    def nearest_upcoming(
        self,
        latitude: float,
        longitude: float,
        tz_id: str,
        candidate_limit: int,
        result_limit: int,
    ) -> List[Tuple[EventDB, float]]:
        """Closest active events to a point, as (event, miles) pairs in distance order."""
        now = now_in_timezone(tz_id)
        distance = distance_expression(latitude, longitude).label("distance")
        candidates = (
            self.db.query(EventDB, distance)
            .filter(EventDB.latitude.isnot(None), EventDB.longitude.isnot(None))
            .filter(_upcoming_prefilter(now.date()))
            .order_by(distance, *_schedule_order())
            .limit(candidate_limit)
            .all()
        )
        logger.debug("Search prefilter returned %d candidates", len(candidates))

        ranked = []
        for event, miles in candidates:
            if is_active(schedule_for(event), tz_id, now):
                ranked.append((event, float(miles)))
                if len(ranked) >= result_limit:
                    break
        return ranked

    async def _geocode_event_address(self, fields: dict):
        full_address = compose_address(fields["address"], fields["city"], fields["state"], fields["zip"])
        result = await self.geocoder.geocode(full_address)
        if result is None:
            raise GeocodeUnresolvable(f"Could not geocode address: {full_address}")
        return result

    async def insert(self, data: EventCreate) -> EventDB:
        fields = data.model_dump()
        if fields["latitude"] is None or fields["longitude"] is None:
            result = await self._geocode_event_address(fields)
            fields["latitude"] = result.latitude
            fields["longitude"] = result.longitude

        event = EventDB(**fields)
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        logger.info("Created event %s (%s) at %s, %s", event.id, event.event_type, event.city, event.state)
        return event

    async def update(self, event_id: int, data: EventUpdate) -> EventDB:
        changes = data.supplied_fields()
        try:
            event = self.db.get(EventDB, event_id, with_for_update=True)
            if event is None:
                raise EventNotFound(event_id)

            schedule = {field: changes.get(field, getattr(event, field)) for field in SCHEDULE_FIELDS}
            problem = schedule_problem(**schedule)
            if problem:
                raise InvalidSchedule(problem)

            address_changed = any(
                field in changes and changes[field] != getattr(event, field) for field in ADDRESS_FIELDS
            )
            explicit_point = "latitude" in changes and "longitude" in changes
            if address_changed and not explicit_point:
                merged = {field: changes.get(field, getattr(event, field)) for field in ADDRESS_FIELDS}
                result = await self._geocode_event_address(merged)
                changes["latitude"] = result.latitude
                changes["longitude"] = result.longitude

            for field, value in changes.items():
                setattr(event, field, value)
            event.updated_at = func.now()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(event)
        logger.info("Updated event %s (%s)", event.id, ", ".join(sorted(changes)) or "no changes")
        return event

    def delete(self, event_id: int) -> None:
        deleted = self.db.query(EventDB).filter(EventDB.id == event_id).delete()
        self.db.commit()
        if not deleted:
            raise EventNotFound(event_id)
        logger.info("Deleted event %s", event_id)

    def bulk_insert(self, rows: List[dict]) -> List[EventDB]:
        """Insert every row or none of them."""
        events = [EventDB(**fields) for fields in rows]
        try:
            self.db.add_all(events)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        for event in events:
            self.db.refresh(event)
        return events

    async def backfill_coordinates(self) -> int:
        """Geocode stored events that have no coordinates yet; returns how many were filled."""
        missing = (
            self.db.query(EventDB)
            .filter(or_(EventDB.latitude.is_(None), EventDB.longitude.is_(None)))
            .order_by(EventDB.id)
            .all()
        )
        updated = 0
        for event in missing:
            full_address = compose_address(event.address, event.city, event.state, event.zip)
            result = await self.geocoder.geocode(full_address)
            if result is None:
                logger.warning("Could not geocode event %s at %r, leaving it without coordinates", event.id, full_address)
                continue
            event.latitude = result.latitude
            event.longitude = result.longitude
            self.db.commit()
            updated += 1
            logger.info("Updated geocoding for event %s", event.id)
        return updated

    def find_duplicates(self) -> List[List[EventDB]]:
        """Groups of rows sharing date, time, type and address, oldest first."""
        key_columns = [getattr(EventDB, name) for name in DUPLICATE_KEY]
        groups = (
            self.db.query(*key_columns, func.count(EventDB.id).label("count"))
            .group_by(*key_columns)
            .having(func.count(EventDB.id) > 1)
            .order_by(func.count(EventDB.id).desc())
            .all()
        )
        duplicates = []
        for group in groups:
            query = self.db.query(EventDB)
            for name, value in zip(DUPLICATE_KEY, group):
                column = getattr(EventDB, name)
                query = query.filter(column.is_(None) if value is None else column == value)
            duplicates.append(query.order_by(EventDB.created_at, EventDB.id).all())
        return duplicates

    def remove_duplicates(self) -> int:
        """Delete all but the oldest row of each duplicate group; returns rows removed."""
        removed = 0
        try:
            for group in self.find_duplicates():
                keep, extras = group[0], group[1:]
                for event in extras:
                    self.db.delete(event)
                removed += len(extras)
                logger.info("Keeping event %s, removing %s", keep.id, [e.id for e in extras])
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return removed
