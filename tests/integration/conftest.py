"""Integration test fixtures.

Provides an ephemeral PostgreSQL database from pytest-postgresql and helpers
that build small GTFS zip archives in tmp_path. The loader creates every
table it needs, so no schema is applied up front.
"""

from __future__ import annotations

import zipfile
from pathlib import Path

import psycopg
import pytest
from pytest_postgresql import factories

# ---------------------------------------------------------------------------
# pytest-postgresql process fixture
# ---------------------------------------------------------------------------

postgresql_proc = factories.postgresql_proc()
postgresql = factories.postgresql("postgresql_proc")


@pytest.fixture(scope="function")
def db_conn(postgresql):
    """Return (connection, dsn) for a fresh database.

    Each test gets its own database via function scope so tests are isolated.
    """
    dsn = (
        f"host={postgresql.info.host} "
        f"port={postgresql.info.port} "
        f"dbname={postgresql.info.dbname} "
        f"user={postgresql.info.user} "
        f"password={postgresql.info.password or ''}"
    )
    conn = psycopg.connect(dsn, autocommit=False)
    try:
        yield conn, dsn
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# GTFS fixtures
# ---------------------------------------------------------------------------

VALID_FEED = {
    "agency.txt": (
        "agency_id,agency_name,agency_url,agency_timezone\n"
        "A1,Metro Transit,https://metro.example.com,America/New_York\n"
    ),
    "stops.txt": (
        "stop_id,stop_name,stop_lat,stop_lon\n"
        "S1,Main St,40.712776,-74.005974\n"
        "S2,Elm St,40.713,-74.006\n"
    ),
    "routes.txt": (
        "route_id,agency_id,route_short_name,route_long_name,route_type\n"
        "R1,A1,1,Crosstown,3\n"
    ),
    "calendar.txt": (
        "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date\n"
        "WK,1,1,1,1,1,0,0,20240101,20241231\n"
    ),
    "calendar_dates.txt": (
        "service_id,date,exception_type\n"
        "WK,20240704,2\n"
    ),
    "trips.txt": (
        "route_id,service_id,trip_id\n"
        "R1,WK,T1\n"
    ),
    "stop_times.txt": (
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "T1,08:00:00,08:00:00,S1,1\n"
        "T1,25:10:00,25:10:00,S2,2\n"
    ),
    "feed_info.txt": (
        "feed_publisher_name,feed_publisher_url,feed_lang,feed_id,feed_version\n"
        "Metro,https://metro.example.com,en,metro,2024-01\n"
    ),
}


def write_feed(path: Path, tables: dict[str, str | bytes]) -> Path:
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in tables.items():
            zf.writestr(name, data)
    return path


@pytest.fixture
def valid_feed() -> dict[str, str]:
    return dict(VALID_FEED)


@pytest.fixture
def make_feed(tmp_path):
    """Build a zip from VALID_FEED.

    Keyword overrides replace <name>.txt (None removes it); extra adds raw
    entries by full path, e.g. {"gtfs/shapes.txt": ...}.
    """

    def _make(
        name: str = "feed.zip",
        extra: dict[str, str | bytes] | None = None,
        **overrides: str | None,
    ) -> Path:
        tables = dict(VALID_FEED)
        for file_stem, data in overrides.items():
            file_name = f"{file_stem}.txt"
            if data is None:
                tables.pop(file_name, None)
            else:
                tables[file_name] = data
        tables.update(extra or {})
        return write_feed(tmp_path / name, tables)

    return _make
