"""Validate a whole batch of events before writing any of it."""
import logging
from datetime import date, datetime
from typing import List, Optional, Tuple

from errors import GeocodingFailure
from event_service import EventService
from geocoding import GeocodingService, compose_address
from schemas import BulkImportResult, BulkRowError, Event, EventDraft

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("address", "city", "state", "zip", "event_type", "event_time")
DATE_FORMAT = "%Y-%m-%d"


def _parse_date(value: str) -> Optional[date]:
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        return None


def check_draft(draft: EventDraft) -> Tuple[List[str], dict]:
    """Field and date checks for one row.

    Returns (errors, fields) where fields holds the typed values ready for
    storage when there are no errors.
    """
    errors = [f"{name} is required" for name in REQUIRED_FIELDS if not getattr(draft, name)]
    fields = {
        "event_type": draft.event_type,
        "event_time": draft.event_time,
        "address": draft.address,
        "address2": draft.address2 or None,
        "city": draft.city,
        "state": draft.state,
        "zip": draft.zip,
        "event_date": None,
        "start_date": None,
        "end_date": None,
    }

    if draft.start_date or draft.end_date:
        if not (draft.start_date and draft.end_date):
            errors.append("start_date and end_date must both be provided")
        else:
            start, end = _parse_date(draft.start_date), _parse_date(draft.end_date)
            if start is None:
                errors.append("start_date must be in YYYY-MM-DD format")
            if end is None:
                errors.append("end_date must be in YYYY-MM-DD format")
            if start and end:
                if end < start:
                    errors.append("end_date must be on or after start_date")
                fields["start_date"], fields["end_date"] = start, end
    elif not draft.event_date:
        errors.append("event_date or start_date/end_date is required")

    if draft.event_date:
        event_date = _parse_date(draft.event_date)
        if event_date is None:
            errors.append("event_date must be in YYYY-MM-DD format")
        fields["event_date"] = event_date

    return errors, fields


class BulkImporter:
    def __init__(self, events: EventService, geocoder: GeocodingService):
        self.events = events
        self.geocoder = geocoder

    async def validate_and_insert(self, drafts: List[EventDraft]) -> BulkImportResult:
        errors: List[BulkRowError] = []
        staged = []

        # Phase 1: validate and geocode everything, no writes.
        for row_number, draft in enumerate(drafts, start=1):
            row_errors, fields = check_draft(draft)
            if row_errors:
                errors.append(BulkRowError(row=row_number, address=draft.address, error="; ".join(row_errors)))
                continue

            full_address = compose_address(draft.address, draft.city, draft.state, draft.zip)
            try:
                result = await self.geocoder.geocode(full_address)
            except GeocodingFailure as e:
                errors.append(BulkRowError(row=row_number, address=draft.address, error=str(e)))
                continue
            if result is None:
                errors.append(BulkRowError(row=row_number, address=draft.address, error=f"Could not geocode address: {full_address}"))
                continue

            fields["latitude"] = result.latitude
            fields["longitude"] = result.longitude
            staged.append(fields)

        if errors:
            logger.warning("Bulk import rejected: %d of %d rows failed validation", len(errors), len(drafts))
            return BulkImportResult(success=False, errors=errors)

        # Phase 2: one transaction for all rows.
        try:
            inserted = self.events.bulk_insert(staged)
        except Exception as e:
            logger.exception("Bulk insert failed, no rows were written")
            return BulkImportResult(
                success=False,
                errors=[BulkRowError(row=0, address="", error=f"Failed to insert events: {e}")],
            )

        logger.info("Bulk import inserted %d events", len(inserted))
        return BulkImportResult(success=True, inserted=[Event.model_validate(e) for e in inserted])
