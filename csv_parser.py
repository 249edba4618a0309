import csv
import io
import logging
from typing import List, Union

from errors import CsvFormatError
from schemas import EventDraft

logger = logging.getLogger(__name__)

COLUMN_ALIASES = {
    "date": "event_date",
    "time": "event_time",
    "type": "event_type",
}
_DRAFT_FIELDS = set(EventDraft.model_fields)


def _header_key(name: str) -> str:
    return (name or "").strip().lower().replace(" ", "_")


def _row_to_draft(record: dict) -> EventDraft:
    explicit, aliased = {}, {}
    for name, value in record.items():
        if name is None:
            continue  # extra cells beyond the header
        key = _header_key(name)
        value = (value or "").strip() if isinstance(value, str) else ""
        if key in COLUMN_ALIASES:
            aliased[COLUMN_ALIASES[key]] = value
        elif key in _DRAFT_FIELDS:
            explicit[key] = value
    # event_date wins over date, and so on, when both are filled in
    merged = {key: explicit.get(key) or aliased.get(key, "") for key in _DRAFT_FIELDS}
    return EventDraft(**merged)


def parse_csv(content: Union[bytes, str]) -> List[EventDraft]:
    """Parse an uploaded CSV into drafts; unknown columns are ignored."""
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise CsvFormatError("CSV file must be UTF-8 encoded") from e
    content = content.lstrip("\N{ZERO WIDTH NO-BREAK SPACE}")

    drafts = []
    try:
        reader = csv.DictReader(io.StringIO(content))
        if not reader.fieldnames:
            raise CsvFormatError("CSV file is empty or has no header row")
        for record in reader:
            draft = _row_to_draft(record)
            if not any(getattr(draft, name) for name in _DRAFT_FIELDS):
                continue
            drafts.append(draft)
    except csv.Error as e:
        raise CsvFormatError(f"Failed to parse CSV file: {e}") from e

    logger.info("Parsed %d rows from CSV upload", len(drafts))
    return drafts
