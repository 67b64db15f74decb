"""gtfs_etl.service

Service calendars: on which dates a service_id runs.

A Service combines the weekly pattern from calendar.txt (if any) with the
per-date exceptions from calendar_dates.txt. An exception always wins over
the weekly pattern; when calendar_dates lists the same service and date more
than once, the row that comes later in the file wins.

Usage:
    services = load_services(conn, namespace)
    services["WEEKDAY"].active_on(date(2024, 1, 2))   # True
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Mapping

import psycopg
from psycopg import sql

from gtfs_etl.fields import parse_gtfs_date

log = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

EXCEPTION_ADDED = 1
EXCEPTION_REMOVED = 2


@dataclass
class WeeklyCalendar:
    start_date: date
    end_date: date
    days: tuple[bool, ...]

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date and self.days[day.weekday()]


@dataclass
class Service:
    service_id: str
    calendar: WeeklyCalendar | None = None
    exceptions: dict[date, int] = field(default_factory=dict)

    def active_on(self, day: date) -> bool:
        exception_type = self.exceptions.get(day)
        if exception_type is not None:
            return exception_type == EXCEPTION_ADDED
        return self.calendar is not None and self.calendar.covers(day)

    def active_dates(self) -> set[date]:
        """Every date on which this service runs."""
        dates: set[date] = set()
        if self.calendar is not None:
            day = self.calendar.start_date
            while day <= self.calendar.end_date:
                if self.calendar.days[day.weekday()]:
                    dates.add(day)
                day += timedelta(days=1)
        for day, exception_type in self.exceptions.items():
            if exception_type == EXCEPTION_ADDED:
                dates.add(day)
            else:
                dates.discard(day)
        return dates


# ---------------------------------------------------------------------------
# Building
# ---------------------------------------------------------------------------

def _flag(value: Any) -> bool:
    try:
        return int(value) == 1
    except (TypeError, ValueError):
        return False


def build_services(
    calendar_rows: Iterable[Mapping[str, Any]],
    calendar_date_rows: Iterable[Mapping[str, Any]],
) -> dict[str, Service]:
    """Combine calendar and calendar_dates rows (in file order) into Services.

    Rows with unparseable dates or exception types are skipped; they were
    already reported as errors at load time.
    """
    services: dict[str, Service] = {}

    for row in calendar_rows:
        service_id = row.get("service_id")
        start = parse_gtfs_date(row.get("start_date"))
        end = parse_gtfs_date(row.get("end_date"))
        if not service_id or start is None or end is None:
            log.debug("Skipping unusable calendar row for service %s", service_id)
            continue
        service = services.setdefault(service_id, Service(service_id))
        service.calendar = WeeklyCalendar(start, end, tuple(_flag(row.get(d)) for d in WEEKDAYS))

    for row in calendar_date_rows:
        service_id = row.get("service_id")
        day = parse_gtfs_date(row.get("date"))
        try:
            exception_type = int(row.get("exception_type"))
        except (TypeError, ValueError):
            exception_type = None
        if not service_id or day is None or exception_type not in (EXCEPTION_ADDED, EXCEPTION_REMOVED):
            log.debug("Skipping unusable calendar_dates row for service %s", service_id)
            continue
        services.setdefault(service_id, Service(service_id)).exceptions[day] = exception_type

    return services


def _fetch_rows(conn: psycopg.Connection, namespace: str, table_name: str) -> list[dict[str, Any]]:
    exists = conn.execute(
        "SELECT 1 FROM information_schema.tables WHERE table_schema = %s AND table_name = %s",
        (namespace, table_name),
    ).fetchone()
    if exists is None:
        return []
    with conn.cursor() as cur:
        cur.execute(
            sql.SQL("SELECT * FROM {}.{} ORDER BY id").format(
                sql.Identifier(namespace), sql.Identifier(table_name)
            )
        )
        names = [d.name for d in cur.description]
        return [dict(zip(names, r)) for r in cur.fetchall()]


def load_services(conn: psycopg.Connection, namespace: str) -> dict[str, Service]:
    """Build Services from a loaded namespace's calendar and calendar_dates tables."""
    return build_services(
        _fetch_rows(conn, namespace, "calendar"),
        _fetch_rows(conn, namespace, "calendar_dates"),
    )
