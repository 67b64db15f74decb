"""Integration tests: load a feed, export it, and compare the CSV text."""

from __future__ import annotations

import csv
import io
import zipfile

import pytest

from gtfs_etl.errors import FeedLoadError
from gtfs_etl.exporter import export_feed
from gtfs_etl.loader import load_feed


def parse(text):
    return list(csv.reader(io.StringIO(text)))


def exported_tables(path):
    with zipfile.ZipFile(path) as zf:
        return {name: zf.read(name).decode("utf-8") for name in zf.namelist()}


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------

class TestRoundTrip:
    def test_every_loaded_table_exported(self, db_conn, make_feed, valid_feed, tmp_path):
        conn, _ = db_conn
        ns = load_feed(make_feed(), conn).namespace
        result = export_feed(conn, ns, tmp_path / "out" / "export.zip")
        assert set(exported_tables(result.out_path)) == set(valid_feed)
        assert result.tables["stop_times"] == 2
        assert result.tables["agency"] == 1

    def test_csv_matches_source(self, db_conn, make_feed, valid_feed, tmp_path):
        conn, _ = db_conn
        ns = load_feed(make_feed(), conn).namespace
        result = export_feed(conn, ns, tmp_path / "export.zip")
        exported = exported_tables(result.out_path)
        for name, text in valid_feed.items():
            assert parse(exported[name]) == parse(text), name

    def test_times_past_midnight(self, db_conn, make_feed, tmp_path):
        conn, _ = db_conn
        ns = load_feed(make_feed(), conn).namespace
        result = export_feed(conn, ns, tmp_path / "export.zip")
        stop_times = parse(exported_tables(result.out_path)["stop_times.txt"])
        assert stop_times[2][1:3] == ["25:10:00", "25:10:00"]

    def test_single_digit_hour_comes_back_padded(self, db_conn, make_feed, tmp_path):
        conn, _ = db_conn
        stop_times = (
            "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
            "T1,8:05:00,8:05:00,S1,1\n"
        )
        ns = load_feed(make_feed(stop_times=stop_times), conn).namespace
        result = export_feed(conn, ns, tmp_path / "export.zip")
        exported = parse(exported_tables(result.out_path)["stop_times.txt"])
        assert exported[1][1:3] == ["08:05:00", "08:05:00"]

    def test_doubles_rounded_without_trailing_zeros(self, db_conn, make_feed, tmp_path):
        conn, _ = db_conn
        stops = (
            "stop_id,stop_name,stop_lat,stop_lon\n"
            "S1,Main St,40.7127761234,-74.0059740000\n"
            "S2,Elm St,40.713,-74.006\n"
        )
        ns = load_feed(make_feed(stops=stops), conn).namespace
        result = export_feed(conn, ns, tmp_path / "export.zip")
        exported = parse(exported_tables(result.out_path)["stops.txt"])
        assert exported[1][2:] == ["40.712776", "-74.005974"]
        assert exported[2][2:] == ["40.713", "-74.006"]

    def test_unknown_column_and_empty_values_preserved(self, db_conn, make_feed, tmp_path):
        conn, _ = db_conn
        stops = (
            "stop_id,stop_name,stop_lat,stop_lon,platform_note\n"
            "S1,Main St,40.712776,-74.005974,north side\n"
            "S2,,40.713,-74.006,\n"
        )
        ns = load_feed(make_feed(stops=stops), conn).namespace
        result = export_feed(conn, ns, tmp_path / "export.zip")
        assert parse(exported_tables(result.out_path)["stops.txt"]) == parse(stops)

    def test_missing_optional_table_not_written(self, db_conn, make_feed, tmp_path):
        conn, _ = db_conn
        ns = load_feed(make_feed(feed_info=None), conn).namespace
        result = export_feed(conn, ns, tmp_path / "export.zip")
        assert "feed_info.txt" not in exported_tables(result.out_path)
        assert "feed_info" not in result.tables


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

class TestExportFailures:
    def test_unknown_namespace(self, db_conn, tmp_path):
        conn, _ = db_conn
        with pytest.raises(FeedLoadError):
            export_feed(conn, "nosuchfeedxx", tmp_path / "export.zip")
        assert not (tmp_path / "export.zip").exists()
