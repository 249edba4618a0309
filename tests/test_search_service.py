"""Tests for the location search flow."""

from datetime import timedelta

import pytest

from conftest import NYC_10001, miles_north, run
from errors import GeocodingFailure, LocationUnresolvable, MissingLocationInput
from schemas import LocationQuery
from search_service import SearchService, pick_location_text
from timezone_service import today_in_timezone


@pytest.fixture
def search(event_service, geocoder):
    return SearchService(event_service, geocoder, event_service.timezones, candidate_limit=100, result_limit=6)


@pytest.mark.parametrize("query, expected", [
    (LocationQuery(address="1 Main St", zip="10001", city="X", state="Y"), ("1 Main St", "address")),
    (LocationQuery(zip="10001", city="X", state="Y"), ("10001", "zip code")),
    (LocationQuery(city="Springfield", state="IL"), ("Springfield, IL", "city and state")),
    (LocationQuery(address="  ", zip=" 10001 "), ("10001", "zip code")),
])
def test_pick_location_text_priority(query, expected):
    assert pick_location_text(query) == expected


@pytest.mark.parametrize("query", [
    LocationQuery(),
    LocationQuery(city="Springfield"),
    LocationQuery(state="IL"),
    LocationQuery(address="", zip=""),
])
def test_missing_input_fails_before_any_request(fake_maps, search, query):
    with pytest.raises(MissingLocationInput):
        run(search.search(query))
    assert fake_maps.calls == []


def test_address_only_geocodes_once(fake_maps, search):
    fake_maps.geocodes["1 Main St"] = NYC_10001
    run(search.search(LocationQuery(address="1 Main St")))
    assert fake_maps.addresses() == ["1 Main St"]


def test_zip_only_geocodes_once(fake_maps, search):
    fake_maps.geocodes["10001"] = NYC_10001
    run(search.search(LocationQuery(zip="10001")))
    assert fake_maps.addresses() == ["10001"]


def test_unresolvable_location_names_the_field(search):
    with pytest.raises(LocationUnresolvable, match="zip code"):
        run(search.search(LocationQuery(zip="00000")))
    with pytest.raises(LocationUnresolvable, match="city and state"):
        run(search.search(LocationQuery(city="Atlantis", state="ZZ")))


def test_geocoding_failure_propagates(fake_maps, search):
    fake_maps.geocodes["10001"] = "OVER_QUERY_LIMIT"
    with pytest.raises(GeocodingFailure):
        run(search.search(LocationQuery(zip="10001")))


def test_zip_scenario_orders_by_distance(fake_maps, search, add_event):
    fake_maps.geocodes["10001"] = NYC_10001
    far = add_event(event_type="far", latitude=miles_north(NYC_10001, 3.4)[0], longitude=NYC_10001[1])
    near = add_event(event_type="near", latitude=miles_north(NYC_10001, 1.2)[0], longitude=NYC_10001[1])

    results = run(search.search(LocationQuery(zip="10001")))

    assert [r.event.id for r in results] == [near.id, far.id]
    assert results[0].distance_miles == pytest.approx(1.2, abs=1e-3)
    assert results[1].distance_miles == pytest.approx(3.4, abs=1e-3)
    assert results[0].driving_meters == 1000
    assert results[1].driving_seconds == 240
    assert fake_maps.count("/distancematrix/json") == 1


def test_results_capped_and_sorted(fake_maps, search, add_event):
    fake_maps.geocodes["10001"] = NYC_10001
    for miles in [9, 2, 7, 1, 8, 3, 6, 5, 4]:
        point = miles_north(NYC_10001, miles)
        add_event(latitude=point[0], longitude=point[1])

    results = run(search.search(LocationQuery(zip="10001")))

    distances = [r.distance_miles for r in results]
    assert len(results) == 6
    assert distances == sorted(distances)
    assert distances[0] == pytest.approx(1, abs=1e-3)
    assert distances[-1] == pytest.approx(6, abs=1e-3)


def test_past_and_ungeocoded_events_are_skipped(fake_maps, search, add_event):
    fake_maps.geocodes["10001"] = NYC_10001
    today = today_in_timezone("UTC")
    add_event(event_date=today - timedelta(days=1))
    add_event(latitude=None, longitude=None)
    point = miles_north(NYC_10001, 2)
    upcoming = add_event(latitude=point[0], longitude=point[1])

    results = run(search.search(LocationQuery(zip="10001")))

    assert [r.event.id for r in results] == [upcoming.id]


def test_candidates_refiltered_after_sql(fake_maps, event_service, geocoder, add_event):
    fake_maps.geocodes["10001"] = NYC_10001
    today = today_in_timezone("UTC")
    # same day, already started: passes the date prefilter, fails the exact check
    add_event(event_date=today, event_time="12am - 11:59pm")
    point = miles_north(NYC_10001, 5)
    later = add_event(latitude=point[0], longitude=point[1])

    search = SearchService(event_service, geocoder, event_service.timezones, candidate_limit=100, result_limit=6)
    results = run(search.search(LocationQuery(zip="10001")))

    assert [r.event.id for r in results] == [later.id]


def test_partial_distance_matrix_failure(fake_maps, search, add_event):
    fake_maps.geocodes["10001"] = NYC_10001
    fake_maps.matrix_statuses = ["OK", "NOT_FOUND"]
    for miles in (1, 2):
        point = miles_north(NYC_10001, miles)
        add_event(latitude=point[0], longitude=point[1])

    results = run(search.search(LocationQuery(zip="10001")))

    assert results[0].driving_meters == 1000
    assert results[1].driving_meters is None
    assert results[1].driving_seconds is None


def test_no_events_is_empty_and_skips_distance_matrix(fake_maps, search):
    fake_maps.geocodes["10001"] = NYC_10001
    assert run(search.search(LocationQuery(zip="10001"))) == []
    assert fake_maps.count("/distancematrix/json") == 0


def test_timezone_failure_falls_back_to_utc(fake_maps, search, add_event):
    fake_maps.geocodes["10001"] = NYC_10001
    fake_maps.timezone = {"status": "OVER_QUERY_LIMIT"}
    add_event()

    assert len(run(search.search(LocationQuery(zip="10001")))) == 1


def test_distance_matrix_refusal_keeps_ranked_results(fake_maps, search, add_event):
    fake_maps.geocodes["10001"] = NYC_10001
    fake_maps.matrix_status = "OVER_QUERY_LIMIT"
    point = miles_north(NYC_10001, 1.2)
    add_event(latitude=point[0], longitude=point[1])

    [result] = run(search.search(LocationQuery(zip="10001")))

    assert result.distance_miles == pytest.approx(1.2, abs=1e-3)
    assert result.driving_meters is None
    assert result.driving_seconds is None


def test_search_judges_events_in_origin_timezone(fake_maps, search, add_event):
    fake_maps.geocodes["10001"] = NYC_10001
    fake_maps.timezone = {"status": "OK", "timeZoneId": "Pacific/Kiritimati"}
    add_event()

    assert len(run(search.search(LocationQuery(zip="10001")))) == 1
    assert fake_maps.count("/timezone/json") == 1
