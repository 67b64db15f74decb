"""Unit tests for gtfs_etl.archive."""

from __future__ import annotations

import zipfile

import pytest

from gtfs_etl.archive import GtfsArchive, UnreadableRecord
from gtfs_etl.errors import FeedLoadError


def make_zip(tmp_path, entries, name="feed.zip"):
    path = tmp_path / name
    with zipfile.ZipFile(path, "w") as zf:
        for entry_name, data in entries.items():
            zf.writestr(entry_name, data)
    return path


# ---------------------------------------------------------------------------
# Opening and lookup
# ---------------------------------------------------------------------------

class TestOpen:
    def test_not_a_zip(self, tmp_path):
        path = tmp_path / "feed.zip"
        path.write_text("definitely not a zip")
        with pytest.raises(FeedLoadError):
            GtfsArchive(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FeedLoadError):
            GtfsArchive(tmp_path / "absent.zip")


class TestFindEntry:
    def test_root_entry(self, tmp_path):
        with GtfsArchive(make_zip(tmp_path, {"stops.txt": "stop_id\nS1\n"})) as archive:
            entry = archive.find_entry("stops.txt")
        assert entry.name == "stops.txt"
        assert not entry.nested
        assert entry.file_size == len("stop_id\nS1\n")

    def test_nested_entry(self, tmp_path):
        with GtfsArchive(make_zip(tmp_path, {"gtfs/stops.txt": "stop_id\n"})) as archive:
            entry = archive.find_entry("stops.txt")
        assert entry.name == "gtfs/stops.txt"
        assert entry.nested

    def test_root_preferred_over_nested(self, tmp_path):
        path = make_zip(tmp_path, {"old/stops.txt": "stop_id\n", "stops.txt": "stop_id\n"})
        with GtfsArchive(path) as archive:
            assert not archive.find_entry("stops.txt").nested

    def test_suffix_is_not_a_match(self, tmp_path):
        with GtfsArchive(make_zip(tmp_path, {"legacy_stops.txt": "stop_id\n"})) as archive:
            assert archive.find_entry("stops.txt") is None


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class TestReadRecords:
    def test_bom_stripped_and_cells_trimmed(self, tmp_path):
        data = "\ufeffstop_id, stop_name \r\nS1,  Main St \r\n".encode("utf-8")
        with GtfsArchive(make_zip(tmp_path, {"stops.txt": data})) as archive:
            records = list(archive.read_records(archive.find_entry("stops.txt")))
        assert records == [["stop_id", "stop_name"], ["S1", "Main St"]]

    def test_quoted_commas_and_newlines(self, tmp_path):
        data = 'stop_id,stop_desc\nS1,"Corner of A, B"\nS2,"two\nlines"\n'
        with GtfsArchive(make_zip(tmp_path, {"stops.txt": data})) as archive:
            records = list(archive.read_records(archive.find_entry("stops.txt")))
        assert records[1] == ["S1", "Corner of A, B"]
        assert records[2] == ["S2", "two\nlines"]

    def test_blank_line_is_empty_record(self, tmp_path):
        with GtfsArchive(make_zip(tmp_path, {"stops.txt": "stop_id\nS1\n\nS2\n"})) as archive:
            records = list(archive.read_records(archive.find_entry("stops.txt")))
        assert records == [["stop_id"], ["S1"], [], ["S2"]]

    def test_invalid_utf8_replaced(self, tmp_path):
        data = b"stop_id,stop_name\nS1,Caf\xe9\n"
        with GtfsArchive(make_zip(tmp_path, {"stops.txt": data})) as archive:
            records = list(archive.read_records(archive.find_entry("stops.txt")))
        assert records[1] == ["S1", "Caf\ufffd"]

    def test_oversized_field_yields_unreadable_record(self, tmp_path):
        data = "stop_id,stop_name\nS1,Main St\nS2," + "x" * 200_000 + "\nS3,Elm St\n"
        with GtfsArchive(make_zip(tmp_path, {"stops.txt": data})) as archive:
            records = list(archive.read_records(archive.find_entry("stops.txt")))
        assert len(records) == 4
        assert isinstance(records[2], UnreadableRecord)
        assert "field limit" in records[2].message
        assert records[3] == ["S3", "Elm St"]


# ---------------------------------------------------------------------------
# feed_info peek
# ---------------------------------------------------------------------------

class TestPeekFeedInfo:
    def test_reads_first_row(self, tmp_path):
        data = "feed_publisher_name,feed_id,feed_version\nMetro,metro,2024-01\nOther,x,y\n"
        with GtfsArchive(make_zip(tmp_path, {"feed_info.txt": data})) as archive:
            assert archive.peek_feed_info() == ("metro", "2024-01")

    def test_missing_columns(self, tmp_path):
        with GtfsArchive(make_zip(tmp_path, {"feed_info.txt": "feed_publisher_name\nMetro\n"})) as archive:
            assert archive.peek_feed_info() == (None, None)

    def test_no_feed_info(self, tmp_path):
        with GtfsArchive(make_zip(tmp_path, {"stops.txt": "stop_id\n"})) as archive:
            assert archive.peek_feed_info() == (None, None)
