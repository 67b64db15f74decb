"""Unit tests for the GTFSError record and the ErrorType taxonomy."""

from __future__ import annotations

from gtfs_etl.errors import ErrorType, GTFSError, Priority
from gtfs_etl.schema import build_registry


# ---------------------------------------------------------------------------
# ErrorType
# ---------------------------------------------------------------------------

class TestErrorType:
    def test_priority_and_message(self):
        assert ErrorType.DUPLICATE_ID.priority is Priority.HIGH
        assert ErrorType.UNRECOGNIZED_COLUMN.priority is Priority.LOW
        assert ErrorType.TIME_FORMAT.english_message == "Time format should be HH:MM:SS."

    def test_lookup_by_name(self):
        assert ErrorType["REFERENTIAL_INTEGRITY"] is ErrorType.REFERENTIAL_INTEGRITY

    def test_every_type_has_a_message(self):
        for error_type in ErrorType:
            assert error_type.english_message
            assert isinstance(error_type.priority, Priority)


# ---------------------------------------------------------------------------
# GTFSError
# ---------------------------------------------------------------------------

class TestGTFSError:
    def test_for_line(self):
        stops = build_registry().get("stops")
        error = GTFSError.for_line(stops, 7, ErrorType.NUMBER_TOO_LARGE, "95.0").with_entity_id("S1")
        assert error.entity_type == "Stop"
        assert error.line_number == 7
        assert error.entity_id == "S1"
        assert error.bad_value == "95.0"

    def test_for_table_has_no_line(self):
        error = GTFSError.for_table(build_registry().get("agency"), ErrorType.MISSING_TABLE)
        assert error.entity_type == "Agency"
        assert error.line_number is None

    def test_empty_entity_id_is_none(self):
        assert GTFSError.for_feed(ErrorType.OTHER).with_entity_id("").entity_id is None

    def test_integer_sequence(self):
        assert GTFSError.for_feed(ErrorType.DUPLICATE_ID).with_sequence("12").entity_sequence == 12

    def test_non_integer_sequence_goes_to_info(self):
        error = GTFSError.for_feed(ErrorType.DUPLICATE_ID).with_sequence("B7")
        assert error.entity_sequence is None
        assert error.info == {"sequence": "B7"}

    def test_sequence_beyond_integer_column_goes_to_info(self):
        error = GTFSError.for_feed(ErrorType.DUPLICATE_ID).with_sequence("3000000000")
        assert error.entity_sequence is None
        assert error.info == {"sequence": "3000000000"}

    def test_message_includes_bad_value(self):
        error = GTFSError.for_feed(ErrorType.COLOR_FORMAT, "#FFF")
        assert error.message.endswith("Bad value: #FFF")
        assert GTFSError.for_feed(ErrorType.COLOR_FORMAT).message == ErrorType.COLOR_FORMAT.english_message

    def test_to_dict(self):
        d = GTFSError.for_feed(ErrorType.URL_FORMAT, "example.com").to_dict()
        assert d["error_type"] == "URL_FORMAT"
        assert d["priority"] == "MEDIUM"
        assert d["bad_value"] == "example.com"
        assert d["info"] == {}
