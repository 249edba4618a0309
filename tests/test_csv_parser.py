import pytest

from csv_parser import parse_csv
from errors import CsvFormatError


def test_parse_csv_maps_aliases_and_trims():
    content = (
        "Date,Time,Type,Address,City,State,Zip,Notes\n"
        " 2025-06-01 , 3pm - 5pm ,Health Fair,1 Main St,New York,NY,10001,bring water\n"
    )

    [draft] = parse_csv(content)

    assert draft.event_date == "2025-06-01"
    assert draft.event_time == "3pm - 5pm"
    assert draft.event_type == "Health Fair"
    assert draft.zip == "10001"
    assert draft.address2 == ""


def test_explicit_column_beats_alias():
    content = "date,event_date,event_time,event_type,address,city,state,zip\n2025-01-01,2025-06-01,3pm,Fair,1 Main,NYC,NY,10001\n"
    [draft] = parse_csv(content)
    assert draft.event_date == "2025-06-01"


def test_blank_rows_skipped_and_bom_tolerated():
    content = "\ufeffevent_date,event_time,event_type,address,city,state,zip,start_date,end_date\n" \
              ",,,,,,,,\n" \
              ",10am,Fair,1 Main,NYC,NY,10001,2025-06-01,2025-06-03\n"

    drafts = parse_csv(content.encode("utf-8"))

    assert len(drafts) == 1
    assert drafts[0].start_date == "2025-06-01"
    assert drafts[0].end_date == "2025-06-03"


def test_empty_file_is_rejected():
    with pytest.raises(CsvFormatError):
        parse_csv(b"")


def test_non_utf8_is_rejected():
    with pytest.raises(CsvFormatError):
        parse_csv("event_date\n\xff\xfe".encode("latin-1"))
