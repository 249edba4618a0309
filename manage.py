#!/usr/bin/env python3
"""
Maintenance commands for the events database.

Usage:
    python manage.py init-db                 # Create the events table
    python manage.py backfill-coordinates    # Geocode events missing lat/lon
    python manage.py duplicates stats        # Show duplicate groups
    python manage.py duplicates remove       # Keep the oldest row of each group
"""

import argparse
import asyncio
import logging
import sys

from db_config import Base, SessionLocal, engine
from event_service import EventService
from geocoding import GeocodingService
from maps_client import GoogleMapsClient
from settings import get_settings
from timezone_service import TimezoneService
import models_db  # noqa: F401

logger = logging.getLogger("manage")


def _describe(event) -> str:
    when = event.event_date or f"{event.start_date}..{event.end_date}"
    return f"{event.event_type} on {when} at {event.event_time} - {event.address}, {event.city}, {event.state} {event.zip}"


async def _backfill() -> int:
    settings = get_settings()
    maps = GoogleMapsClient(settings.google_maps_api_key, timeout=settings.maps_timeout_seconds)
    db = SessionLocal()
    try:
        service = EventService(db, GeocodingService(maps), TimezoneService(maps))
        return await service.backfill_coordinates()
    finally:
        db.close()
        await maps.aclose()


def _duplicates(action: str) -> None:
    db = SessionLocal()
    try:
        # duplicate handling never calls out to Google
        service = EventService(db, geocoder=None, timezones=None)
        if action == "stats":
            groups = service.find_duplicates()
            if not groups:
                print("No duplicates found.")
                return
            for index, group in enumerate(groups, start=1):
                print(f"{index}. {_describe(group[0])}")
                print(f"   {len(group)} rows, ids {[event.id for event in group]}")
            total = sum(len(group) for group in groups)
            print(f"\n{len(groups)} groups, {total} rows, {total - len(groups)} would be removed")
        else:
            removed = service.remove_duplicates()
            print(f"Removed {removed} duplicate rows")
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Events database maintenance")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="Create tables that do not exist yet")
    sub.add_parser("backfill-coordinates", help="Geocode events without coordinates")
    dup = sub.add_parser("duplicates", help="Find or remove duplicate events")
    dup.add_argument("action", choices=["stats", "remove"])
    args = parser.parse_args(argv)

    logging.basicConfig(level=get_settings().log_level, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "init-db":
        Base.metadata.create_all(bind=engine)
        print("Tables created")
    elif args.command == "backfill-coordinates":
        updated = asyncio.run(_backfill())
        print(f"Updated coordinates for {updated} events")
    else:
        _duplicates(args.action)
    return 0


if __name__ == "__main__":
    sys.exit(main())
