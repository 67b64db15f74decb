"""Unit tests for gtfs_etl.references.ReferenceTracker."""

from __future__ import annotations

import pytest

from gtfs_etl.errors import ErrorType
from gtfs_etl.references import ReferenceTracker
from gtfs_etl.schema import build_registry


@pytest.fixture(scope="module")
def registry():
    return build_registry()


@pytest.fixture
def tracker():
    return ReferenceTracker()


def check(tracker, table, field_name, value, key_value, line_number=2):
    return tracker.check_references_and_uniqueness(
        key_value, line_number, table.field_for_name(field_name), value, table
    )


# ---------------------------------------------------------------------------
# Uniqueness
# ---------------------------------------------------------------------------

class TestDuplicateIds:
    def test_first_occurrence_is_clean(self, tracker, registry):
        stops = registry.get("stops")
        assert check(tracker, stops, "stop_id", "S1", "S1") == []
        assert tracker.has_id("stop_id", "S1")

    def test_second_occurrence_reports_once(self, tracker, registry):
        stops = registry.get("stops")
        check(tracker, stops, "stop_id", "S1", "S1", line_number=2)
        [error] = check(tracker, stops, "stop_id", "S1", "S1", line_number=3)
        assert error.error_type is ErrorType.DUPLICATE_ID
        assert error.bad_value == "stop_id:S1"
        assert error.entity_id == "S1"
        assert error.line_number == 3
        assert error.entity_type == "Stop"

    def test_sequence_duplicates_are_per_key(self, tracker, registry):
        stop_times = registry.get("stop_times")
        assert check(tracker, stop_times, "stop_sequence", "1", "T1") == []
        assert check(tracker, stop_times, "stop_sequence", "1", "T2") == []
        [error] = check(tracker, stop_times, "stop_sequence", "1", "T1", line_number=4)
        assert error.error_type is ErrorType.DUPLICATE_ID
        assert error.bad_value == "stop_sequence:T1:1"
        assert error.entity_id == "T1"
        assert error.entity_sequence == 1

    def test_non_unique_key_defines_ids(self, tracker, registry):
        feed_info = registry.get("feed_info")
        assert check(tracker, feed_info, "feed_publisher_name", "Metro", "Metro") == []
        assert check(tracker, feed_info, "feed_publisher_name", "Metro", "Metro") == []
        assert tracker.has_id("feed_publisher_name", "Metro")


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------

class TestReferences:
    def test_dangling_reference(self, tracker, registry):
        trips = registry.get("trips")
        [error] = check(tracker, trips, "route_id", "R9", "T1")
        assert error.error_type is ErrorType.REFERENTIAL_INTEGRITY
        assert error.bad_value == "route_id:R9"
        assert error.entity_id == "T1"

    def test_reference_after_parent_loaded(self, tracker, registry):
        check(tracker, registry.get("routes"), "route_id", "R1", "R1")
        assert check(tracker, registry.get("trips"), "route_id", "R1", "T1") == []

    def test_empty_optional_reference_skipped(self, tracker, registry):
        assert check(tracker, registry.get("routes"), "agency_id", "", "R1") == []

    def test_calendar_dates_defines_service_ids(self, tracker, registry):
        calendar_dates = registry.get("calendar_dates")
        errors = check(tracker, calendar_dates, "service_id", "HOLIDAY", "HOLIDAY")
        assert [e.error_type for e in errors] == [ErrorType.REFERENTIAL_INTEGRITY]
        assert check(tracker, registry.get("trips"), "service_id", "HOLIDAY", "T1") == []

    def test_calendar_service_satisfies_reference(self, tracker, registry):
        check(tracker, registry.get("calendar"), "service_id", "WK", "WK")
        assert check(tracker, registry.get("calendar_dates"), "service_id", "WK", "WK") == []

    def test_transfer_stops_resolve_against_stop_ids(self, tracker, registry):
        stops = registry.get("stops")
        check(tracker, stops, "stop_id", "S1", "S1")
        check(tracker, stops, "stop_id", "S2", "S2", line_number=3)
        transfers = registry.get("transfers")
        assert check(tracker, transfers, "from_stop_id", "S1", "S1") == []
        assert check(tracker, transfers, "to_stop_id", "S2", "S1") == []

    def test_transfer_to_unknown_stop(self, tracker, registry):
        check(tracker, registry.get("stops"), "stop_id", "S1", "S1")
        [error] = check(tracker, registry.get("transfers"), "to_stop_id", "S9", "S1")
        assert error.error_type is ErrorType.REFERENTIAL_INTEGRITY
        assert error.bad_value == "to_stop_id:S9"

    def test_booking_rule_notice_service(self, tracker, registry):
        check(tracker, registry.get("calendar"), "service_id", "WK", "WK")
        booking_rules = registry.get("booking_rules")
        assert check(tracker, booking_rules, "prior_notice_service_id", "WK", "BR1") == []
        [error] = check(tracker, booking_rules, "prior_notice_service_id", "SAT", "BR2")
        assert error.bad_value == "prior_notice_service_id:SAT"


# ---------------------------------------------------------------------------
# Tracked values
# ---------------------------------------------------------------------------

class TestTrackedValues:
    def test_agency_ids_tracked_including_empty(self, tracker, registry):
        agency = registry.get("agency")
        check(tracker, agency, "agency_id", "", "")
        check(tracker, agency, "agency_id", "A2", "A2", line_number=3)
        assert tracker.unique_values_for_fields["agency_id"] == {"", "A2"}

    def test_foreign_reference_values_tracked(self, tracker, registry):
        check(tracker, registry.get("stops"), "zone_id", "Z1", "S1")
        assert "Z1" in tracker.unique_values_for_fields["zone_id"]

    def test_len_counts_ids(self, tracker, registry):
        check(tracker, registry.get("stops"), "stop_id", "S1", "S1")
        check(tracker, registry.get("stop_times"), "stop_sequence", "1", "T1")
        assert len(tracker) == 2


# ---------------------------------------------------------------------------
# Conditional requirements
# ---------------------------------------------------------------------------

class TestConditionallyRequired:
    def test_station_without_name(self, tracker, registry):
        stops = registry.get("stops")
        values = {"stop_id": "S1", "location_type": 1, "stop_name": None, "stop_lat": 1.0, "stop_lon": 1.0}
        [error] = tracker.check_conditionally_required_fields(stops, 2, values)
        assert error.error_type is ErrorType.CONDITIONALLY_REQUIRED
        assert error.entity_id == "S1"
        assert "stop_name" in error.bad_value

    def test_table_without_conditions(self, tracker, registry):
        assert tracker.check_conditionally_required_fields(registry.get("shapes"), 2, {}) == []

    def test_second_agency_without_id(self, tracker, registry):
        agency = registry.get("agency")
        check(tracker, agency, "agency_id", "", "", line_number=2)
        errors = tracker.check_conditionally_required_fields(agency, 3, {"agency_id": "A2"})
        assert [(e.error_type, e.line_number) for e in errors] == [
            (ErrorType.AGENCY_ID_REQUIRED_FOR_MULTI_AGENCY_FEEDS, 2)
        ]
