"""gtfs_etl.errors

Structured validation errors and the SQL error sink.

Recoverable problems found while loading a feed are never raised. They are
recorded as GTFSError values and appended, in batches, to two tables inside
the feed namespace:

  - errors      one row per problem (type, entity, line, id, sequence, value)
  - error_info  free-form key/value annotations per problem

Only unrecoverable storage failures propagate (as psycopg.Error, wrapped by
the loader into FeedLoadError).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable

import psycopg
from psycopg import sql

if TYPE_CHECKING:
    from gtfs_etl.schema import Table

log = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 500

# errors.entity_sequence is an integer column.
SEQUENCE_MIN = -(2**31)
SEQUENCE_MAX = 2**31 - 1


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class FeedLoadError(Exception):
    """Raised when a feed load fails for a reason that cannot be recorded as data."""


# ---------------------------------------------------------------------------
# Error taxonomy
# ---------------------------------------------------------------------------

class Priority(Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ErrorType(Enum):
    """Closed set of problems the loader can record."""

    BOOLEAN_FORMAT = (Priority.MEDIUM, "A GTFS boolean field must contain the value 1 or 0.")
    COLOR_FORMAT = (Priority.MEDIUM, "A color should be specified with six-characters (three two-digit hexadecimal numbers).")
    COLUMN_NAME_UNSAFE = (Priority.HIGH, "Column header contains characters not safe in SQL, it was renamed.")
    CONDITIONALLY_REQUIRED = (Priority.HIGH, "A conditionally required field was missing in a particular row.")
    AGENCY_ID_REQUIRED_FOR_MULTI_AGENCY_FEEDS = (Priority.HIGH, "For GTFS feeds with more than one agency, agency_id is required.")
    CURRENCY_UNKNOWN = (Priority.MEDIUM, "The currency code was not recognized.")
    DATE_FORMAT = (Priority.MEDIUM, "Date format should be YYYYMMDD.")
    DATE_RANGE = (Priority.MEDIUM, "Date should be between the years 2000 and 2100.")
    DUPLICATE_HEADER = (Priority.MEDIUM, "More than one column in a table has the same name in the header row.")
    DUPLICATE_ID = (Priority.HIGH, "More than one entity in a table has the same ID.")
    ILLEGAL_FIELD_VALUE = (Priority.MEDIUM, "Fields may not contain tabs, carriage returns or new lines.")
    LANGUAGE_FORMAT = (Priority.LOW, "Language should be specified with a valid BCP47 tag.")
    MISSING_COLUMN = (Priority.MEDIUM, "A required column was missing from a table.")
    MISSING_FIELD = (Priority.MEDIUM, "A required field was missing or empty in a particular row.")
    MISSING_TABLE = (Priority.MEDIUM, "This table is required by the GTFS specification but is missing.")
    NUMBER_NEGATIVE = (Priority.MEDIUM, "This field should not contain negative numbers.")
    NUMBER_PARSING = (Priority.MEDIUM, "Unable to parse number from value.")
    NUMBER_TOO_LARGE = (Priority.MEDIUM, "This number is too high.")
    NUMBER_TOO_SMALL = (Priority.MEDIUM, "This number is too low.")
    REFERENTIAL_INTEGRITY = (Priority.HIGH, "This line references an ID that does not exist in the target table.")
    REQUIRED_TABLE_EMPTY = (Priority.MEDIUM, "This table is required by the GTFS specification but is empty.")
    TABLE_IN_SUBDIRECTORY = (Priority.HIGH, "Rather than being at the root of the zip file, a table was nested in a subdirectory.")
    TABLE_MISSING_COLUMN_HEADERS = (Priority.HIGH, "Table is missing column headers.")
    TIME_FORMAT = (Priority.MEDIUM, "Time format should be HH:MM:SS.")
    UNRECOGNIZED_COLUMN = (Priority.LOW, "This column is not part of the GTFS specification and was kept as text.")
    URL_FORMAT = (Priority.MEDIUM, "URL format should be <scheme>://<authority><path>?<query>#<fragment>")
    WRONG_NUMBER_OF_FIELDS = (Priority.MEDIUM, "A row did not have the same number of fields as there are headers in its table.")
    OTHER = (Priority.LOW, "Other errors.")

    def __init__(self, priority: Priority, english_message: str) -> None:
        self.priority = priority
        self.english_message = english_message


# ---------------------------------------------------------------------------
# GTFSError
# ---------------------------------------------------------------------------

@dataclass
class GTFSError:
    """One recorded problem, identified by type plus a flat payload."""

    error_type: ErrorType
    entity_type: str | None = None
    line_number: int | None = None
    entity_id: str | None = None
    entity_sequence: int | None = None
    bad_value: str | None = None
    info: dict[str, str] = field(default_factory=dict)

    @classmethod
    def for_feed(cls, error_type: ErrorType, bad_value: str | None = None) -> GTFSError:
        return cls(error_type=error_type, bad_value=bad_value)

    @classmethod
    def for_table(cls, table: Table, error_type: ErrorType) -> GTFSError:
        return cls(error_type=error_type, entity_type=table.entity_type)

    @classmethod
    def for_line(
        cls,
        table: Table,
        line_number: int,
        error_type: ErrorType,
        bad_value: str | None = None,
    ) -> GTFSError:
        return cls(
            error_type=error_type,
            entity_type=table.entity_type,
            line_number=line_number,
            bad_value=bad_value,
        )

    def with_entity_id(self, entity_id: str | None) -> GTFSError:
        self.entity_id = entity_id or None
        return self

    def with_sequence(self, sequence: str | int | None) -> GTFSError:
        """Attach a sequence value; values the integer column cannot hold go to info."""
        if sequence is None or sequence == "":
            return self
        try:
            value = int(sequence)
        except (TypeError, ValueError):
            value = None
        if value is not None and SEQUENCE_MIN <= value <= SEQUENCE_MAX:
            self.entity_sequence = value
        else:
            self.info["sequence"] = str(sequence)
        return self

    def with_bad_value(self, bad_value: str | None) -> GTFSError:
        self.bad_value = bad_value
        return self

    @property
    def message(self) -> str:
        if self.bad_value:
            return f"{self.error_type.english_message} Bad value: {self.bad_value}"
        return self.error_type.english_message

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.error_type.name,
            "priority": self.error_type.priority.value,
            "entity_type": self.entity_type,
            "line_number": self.line_number,
            "entity_id": self.entity_id,
            "entity_sequence": self.entity_sequence,
            "bad_value": self.bad_value,
            "info": dict(self.info),
        }


# ---------------------------------------------------------------------------
# SQL error sink
# ---------------------------------------------------------------------------

def _storable(value: str | None) -> str | None:
    """PostgreSQL text cannot contain NUL; drop it from values headed for storage."""
    if value is None:
        return None
    return value.replace("\x00", "")


class ErrorStorage:
    """Append-only, batched writer of GTFSError rows into a feed namespace.

    The connection is shared with the loader; this class never commits on
    its own except through commit(), so error rows land in the same
    transaction as the table they describe.
    """

    def __init__(
        self,
        conn: psycopg.Connection,
        namespace: str,
        create_tables: bool = True,
        batch_size: int = INSERT_BATCH_SIZE,
    ) -> None:
        self._conn = conn
        self._namespace = namespace
        self._batch_size = batch_size
        self._pending_errors: list[tuple[Any, ...]] = []
        self._pending_info: list[tuple[Any, ...]] = []
        if create_tables:
            self._create_tables()
            self._next_id = 0
        else:
            self._next_id = self._current_max_id() + 1
        self._initial_id = self._next_id

    @classmethod
    def resume(cls, conn: psycopg.Connection, namespace: str) -> ErrorStorage:
        """Attach to an existing namespace, continuing ids after the current maximum."""
        return cls(conn, namespace, create_tables=False)

    # -- schema ------------------------------------------------------------

    def _table(self, name: str) -> sql.Composed:
        return sql.SQL("{}.{}").format(sql.Identifier(self._namespace), sql.Identifier(name))

    def _create_tables(self) -> None:
        self._conn.execute(
            sql.SQL(
                """
                CREATE TABLE {} (
                  error_id integer PRIMARY KEY,
                  error_type varchar NOT NULL,
                  entity_type varchar,
                  line_number integer,
                  entity_id varchar,
                  entity_sequence integer,
                  bad_value varchar
                )
                """
            ).format(self._table("errors"))
        )
        self._conn.execute(
            sql.SQL(
                "CREATE TABLE {} (error_id integer NOT NULL, key varchar NOT NULL, value varchar)"
            ).format(self._table("error_info"))
        )

    def _current_max_id(self) -> int:
        row = self._conn.execute(
            sql.SQL("SELECT coalesce(max(error_id), -1) FROM {}").format(self._table("errors"))
        ).fetchone()
        return int(row[0])

    # -- writing -----------------------------------------------------------

    def store_error(self, error: GTFSError) -> int:
        """Queue *error* for insertion and return its assigned id."""
        error_id = self._next_id
        self._next_id += 1
        self._pending_errors.append((
            error_id,
            error.error_type.name,
            _storable(error.entity_type),
            error.line_number,
            _storable(error.entity_id),
            error.entity_sequence,
            _storable(error.bad_value),
        ))
        for key, value in error.info.items():
            self._pending_info.append((error_id, _storable(key), _storable(value)))
        if len(self._pending_errors) >= self._batch_size:
            self.flush()
        return error_id

    def store_errors(self, errors: Iterable[GTFSError]) -> None:
        for error in errors:
            self.store_error(error)

    def flush(self) -> None:
        """Execute any queued inserts. Does not commit."""
        if not self._pending_errors and not self._pending_info:
            return
        with self._conn.cursor() as cur:
            if self._pending_errors:
                cur.executemany(
                    sql.SQL(
                        "INSERT INTO {} (error_id, error_type, entity_type, line_number,"
                        " entity_id, entity_sequence, bad_value)"
                        " VALUES (%s, %s, %s, %s, %s, %s, %s)"
                    ).format(self._table("errors")),
                    self._pending_errors,
                )
            if self._pending_info:
                cur.executemany(
                    sql.SQL("INSERT INTO {} (error_id, key, value) VALUES (%s, %s, %s)").format(
                        self._table("error_info")
                    ),
                    self._pending_info,
                )
        log.debug("Flushed %d errors to %s.errors", len(self._pending_errors), self._namespace)
        self._pending_errors.clear()
        self._pending_info.clear()

    def commit(self) -> None:
        self.flush()
        self._conn.commit()

    # -- counting ----------------------------------------------------------

    @property
    def error_count(self) -> int:
        """Errors recorded through this instance, flushed or not."""
        return self._next_id - self._initial_id

    def count_errors(self) -> int:
        """Aggregate count of every error row stored in the namespace."""
        self.flush()
        row = self._conn.execute(
            sql.SQL("SELECT count(*) FROM {}").format(self._table("errors"))
        ).fetchone()
        return int(row[0])


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------

def summarize_errors(conn: psycopg.Connection, namespace: str) -> list[tuple[str, int]]:
    """Return (error_type, count) pairs for a namespace, most frequent first."""
    rows = conn.execute(
        sql.SQL(
            """
            SELECT error_type, count(*)
            FROM {}.errors
            GROUP BY error_type
            ORDER BY count(*) DESC, error_type
            """
        ).format(sql.Identifier(namespace))
    ).fetchall()
    return [(r[0], int(r[1])) for r in rows]


def fetch_errors(
    conn: psycopg.Connection,
    namespace: str,
    error_type: str | None = None,
    entity_type: str | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """Return stored errors (with their info annotations) ordered by id."""
    clauses = []
    params: list[Any] = []
    if error_type is not None:
        clauses.append(sql.SQL("e.error_type = %s"))
        params.append(error_type)
    if entity_type is not None:
        clauses.append(sql.SQL("e.entity_type = %s"))
        params.append(entity_type)
    where = sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses) if clauses else sql.SQL("")
    limit_sql = sql.SQL(" LIMIT {}").format(sql.Literal(limit)) if limit is not None else sql.SQL("")
    query = sql.SQL(
        "SELECT e.error_id, e.error_type, e.entity_type, e.line_number, e.entity_id,"
        " e.entity_sequence, e.bad_value FROM {}.errors e"
    ).format(sql.Identifier(namespace)) + where + sql.SQL(" ORDER BY e.error_id") + limit_sql
    rows = conn.execute(query, params).fetchall()
    results = [
        {
            "error_id": r[0],
            "error_type": r[1],
            "entity_type": r[2],
            "line_number": r[3],
            "entity_id": r[4],
            "entity_sequence": r[5],
            "bad_value": r[6],
            "info": {},
        }
        for r in rows
    ]
    if results:
        by_id = {r["error_id"]: r for r in results}
        info_rows = conn.execute(
            sql.SQL("SELECT error_id, key, value FROM {}.error_info WHERE error_id = ANY(%s)").format(
                sql.Identifier(namespace)
            ),
            (list(by_id),),
        ).fetchall()
        for error_id, key, value in info_rows:
            by_id[error_id]["info"][key] = value
    return results
