"""gtfs_etl.loader

Load one GTFS zip archive into a fresh PostgreSQL namespace.

Responsibilities:
  - Create the namespace, the error tables and the public.feeds registry row
  - Read each table in dependency order, mapping headers to schema fields
  - Convert every cell, recording problems as GTFSError rows
  - Track ids across tables for duplicate and reference checks
  - Write rows in batches via COPY or parameterized INSERT
  - Index each table and commit once per table
  - On fatal failure, drop everything created for the load

Recoverable problems never abort a load. A FeedLoadError means nothing was
left behind.

Usage:
    import psycopg
    from gtfs_etl.loader import load_feed

    with psycopg.connect(dsn, autocommit=False) as conn:
        result = load_feed(Path("feed.zip"), conn)
        print(result.namespace, result.error_count)
"""

from __future__ import annotations

import logging
import time
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

import psycopg
from psycopg import sql

from gtfs_etl.archive import ArchiveEntry, GtfsArchive, UnreadableRecord
from gtfs_etl.config import LoaderConfig
from gtfs_etl.errors import ErrorStorage, ErrorType, FeedLoadError, GTFSError
from gtfs_etl.feeds import create_feed_registry, drop_feed_namespace, register_feed
from gtfs_etl.fields import NULL_CHARACTER, Field, strip_null_characters
from gtfs_etl.normalize import StringInterner, file_hashes, human_count, random_namespace
from gtfs_etl.references import ReferenceTracker
from gtfs_etl.schema import SchemaRegistry, Table, build_registry

log = logging.getLogger(__name__)

PROGRESS_INTERVAL = 500_000
HEADER_LINE = 1

# Errors that abort a load and trigger cleanup.
FATAL_ERRORS = (psycopg.Error, OSError, zipfile.BadZipFile)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class TableLoadResult:
    row_count: int = 0
    error_count: int = 0
    file_size: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "row_count": self.row_count,
            "error_count": self.error_count,
            "file_size": self.file_size,
        }


@dataclass
class FeedLoadResult:
    namespace: str
    filename: str
    feed_id: str | None = None
    feed_version: str | None = None
    error_count: int = 0
    tables: dict[str, TableLoadResult] = field(default_factory=dict)
    load_time_seconds: float = 0.0

    @property
    def row_count(self) -> int:
        return sum(t.row_count for t in self.tables.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "filename": self.filename,
            "feed_id": self.feed_id,
            "feed_version": self.feed_version,
            "error_count": self.error_count,
            "row_count": self.row_count,
            "load_time_seconds": round(self.load_time_seconds, 3),
            "tables": {name: t.to_dict() for name, t in self.tables.items()},
        }


# ---------------------------------------------------------------------------
# Batch writers
# ---------------------------------------------------------------------------

class BatchWriter:
    """Buffers converted rows and writes them every batch_size rows."""

    def __init__(self, conn: psycopg.Connection, statement: sql.Composed, batch_size: int) -> None:
        self._conn = conn
        self._statement = statement
        self._batch_size = batch_size
        self._rows: list[list[Any]] = []
        self.rows_written = 0

    def add(self, row: list[Any]) -> None:
        self._rows.append(row)
        if len(self._rows) >= self._batch_size:
            self.flush()

    def flush(self) -> None:
        if not self._rows:
            return
        self._write(self._rows)
        self.rows_written += len(self._rows)
        self._rows = []

    def _write(self, rows: list[list[Any]]) -> None:
        raise NotImplementedError


class CopyWriter(BatchWriter):
    """One COPY ... FROM STDIN per batch; psycopg escapes text and writes NULL as \\N."""

    def _write(self, rows):
        with self._conn.cursor() as cur:
            with cur.copy(self._statement) as copy:
                for row in rows:
                    copy.write_row(row)


class InsertWriter(BatchWriter):
    def _write(self, rows):
        with self._conn.cursor() as cur:
            cur.executemany(self._statement, rows)


def make_writer(
    conn: psycopg.Connection,
    table: Table,
    namespace: str,
    fields: Sequence[Field],
    write_mode: str,
    batch_size: int,
) -> BatchWriter:
    if write_mode == "copy":
        return CopyWriter(conn, table.copy_sql(namespace, fields), batch_size)
    if write_mode == "insert":
        return InsertWriter(conn, table.insert_sql(namespace, fields), batch_size)
    raise ValueError(f"unknown write mode: {write_mode}")


# ---------------------------------------------------------------------------
# FeedLoader
# ---------------------------------------------------------------------------

class FeedLoader:
    """Loads a single archive. Instances are single-use."""

    def __init__(
        self,
        conn: psycopg.Connection,
        registry: SchemaRegistry | None = None,
        config: LoaderConfig | None = None,
    ) -> None:
        self.conn = conn
        self.registry = registry if registry is not None else build_registry()
        self.config = config if config is not None else LoaderConfig()
        self.tracker = ReferenceTracker()
        self.interner = StringInterner()
        self.errors: ErrorStorage | None = None
        self.namespace: str | None = None

    # -- entry point -------------------------------------------------------

    def load(self, archive_path: Path) -> FeedLoadResult:
        archive_path = Path(archive_path)
        started = time.monotonic()
        with GtfsArchive(archive_path) as archive:
            try:
                md5, sha1 = file_hashes(archive_path)
                feed_id, feed_version = archive.peek_feed_info()
            except FATAL_ERRORS as exc:
                raise FeedLoadError(f"Cannot read GTFS archive {archive_path}: {exc}") from exc

            self.namespace = random_namespace()
            log.info("Loading %s into namespace %s", archive_path.name, self.namespace)
            result = FeedLoadResult(
                namespace=self.namespace,
                filename=archive_path.name,
                feed_id=feed_id,
                feed_version=feed_version,
            )
            try:
                self._create_namespace(md5, sha1, feed_id, feed_version, archive_path.name)
                for table in self.registry.load_order:
                    result.tables[table.name] = self._load_table(archive, table)
                result.error_count = self.errors.count_errors()
                self.conn.commit()
            except FATAL_ERRORS as exc:
                self._abandon()
                raise FeedLoadError(f"Loading {archive_path.name} failed: {exc}") from exc
            finally:
                self.interner.clear()

        result.load_time_seconds = time.monotonic() - started
        log.info(
            "Loaded %s rows into %s with %d errors in %.1fs",
            human_count(result.row_count),
            self.namespace,
            result.error_count,
            result.load_time_seconds,
        )
        return result

    def _create_namespace(
        self,
        md5: str,
        sha1: str,
        feed_id: str | None,
        feed_version: str | None,
        filename: str,
    ) -> None:
        self.conn.execute(sql.SQL("CREATE SCHEMA {}").format(sql.Identifier(self.namespace)))
        self.errors = ErrorStorage(self.conn, self.namespace, batch_size=self.config.batch_size)
        create_feed_registry(self.conn)
        register_feed(self.conn, self.namespace, md5, sha1, feed_id, feed_version, filename)
        self.conn.commit()

    def _abandon(self) -> None:
        """Roll back and remove the namespace and its registry row."""
        log.error("Feed load into %s failed; removing namespace", self.namespace)
        try:
            self.conn.rollback()
            drop_feed_namespace(self.conn, self.namespace)
            self.conn.commit()
        except psycopg.Error:
            log.exception("Could not clean up namespace %s", self.namespace)

    # -- one table ---------------------------------------------------------

    def _load_table(self, archive: GtfsArchive, table: Table) -> TableLoadResult:
        errors_before = self.errors.error_count
        result = TableLoadResult()
        entry = archive.find_entry(table.file_name)
        if entry is None:
            if table.is_required:
                log.warning("Required table %s is missing", table.file_name)
                self.errors.store_error(GTFSError.for_table(table, ErrorType.MISSING_TABLE))
            else:
                log.info("Table %s was not present in the zip file. Skipping.", table.file_name)
            self.errors.commit()
            result.error_count = self.errors.error_count - errors_before
            return result

        log.info("Loading GTFS table %s", table.name)
        result.file_size = entry.file_size
        if entry.nested:
            self.errors.store_error(
                GTFSError.for_table(table, ErrorType.TABLE_IN_SUBDIRECTORY).with_bad_value(entry.name)
            )
        result.row_count = self._load_records(archive, entry, table)
        if result.row_count == 0 and table.is_required:
            self.errors.store_error(GTFSError.for_table(table, ErrorType.REQUIRED_TABLE_EMPTY))
        self.errors.commit()
        result.error_count = self.errors.error_count - errors_before
        return result

    def _load_records(self, archive: GtfsArchive, entry: ArchiveEntry, table: Table) -> int:
        records = archive.read_records(entry)
        try:
            headers = next(records, None)
            if not isinstance(headers, list) or not any(headers):
                self.errors.store_error(GTFSError.for_table(table, ErrorType.TABLE_MISSING_COLUMN_HEADERS))
                return 0
            fields = table.fields_from_headers(headers, self.errors)
            columns = [f for f in fields if f is not None]
            if not columns:
                self.errors.store_error(GTFSError.for_table(table, ErrorType.TABLE_MISSING_COLUMN_HEADERS))
                return 0
            for missing in table.missing_required_fields(fields):
                self.errors.store_error(
                    GTFSError.for_table(table, ErrorType.MISSING_COLUMN).with_bad_value(missing.name)
                )

            table.create_sql_table(self.conn, self.namespace, columns)
            writer = make_writer(
                self.conn, table, self.namespace, columns, self.config.write_mode, self.config.batch_size
            )
            for index, record in enumerate(records):
                line_number = index + HEADER_LINE + 1
                if isinstance(record, UnreadableRecord):
                    self.errors.store_error(
                        GTFSError.for_line(table, line_number, ErrorType.OTHER, record.message)
                    )
                    continue
                if len(record) != len(fields):
                    self.errors.store_error(
                        GTFSError.for_line(
                            table,
                            line_number,
                            ErrorType.WRONG_NUMBER_OF_FIELDS,
                            f"expected={len(fields)}; found={len(record)}",
                        )
                    )
                    continue
                writer.add(self._convert_row(table, fields, record, line_number))
                if line_number % PROGRESS_INTERVAL == 0:
                    log.info("Processed %s lines of %s", human_count(line_number), table.file_name)
            writer.flush()
        finally:
            records.close()

        if self.config.create_indexes:
            table.create_indexes(self.conn, self.namespace)
        return writer.rows_written

    # -- one row -----------------------------------------------------------

    def _convert_row(
        self,
        table: Table,
        fields: Sequence[Field | None],
        record: Sequence[str],
        line_number: int,
    ) -> list[Any]:
        """Convert one record into [line_number, *column values] and record its errors."""
        nul_columns = {i for i, cell in enumerate(record) if NULL_CHARACTER.sequence in cell}
        if nul_columns:
            record = [strip_null_characters(cell) for cell in record]
        raw = {f.name: cell for f, cell in zip(fields, record) if f is not None}
        key_value = raw.get(table.key_field_name, "")
        # An added service date may introduce a service_id absent from calendar.txt.
        skip_service_reference = table.name == "calendar_dates" and raw.get("exception_type") == "1"

        row: list[Any] = [line_number]
        values: dict[str, Any] = {}
        for index, (f, cell) in enumerate(zip(fields, record)):
            if f is None:
                continue
            if index in nul_columns:
                self.errors.store_error(
                    GTFSError.for_line(table, line_number, ErrorType.ILLEGAL_FIELD_VALUE, NULL_CHARACTER.description)
                    .with_entity_id(key_value)
                )
            cell = self.interner.intern(cell)
            if cell == "":
                if f.is_required and not f.empty_value_permitted:
                    self.errors.store_error(
                        GTFSError.for_line(table, line_number, ErrorType.MISSING_FIELD, f.name)
                        .with_entity_id(key_value)
                    )
                clean = None
            else:
                result = f.validate(cell)
                for error in result.errors:
                    error.entity_type = table.entity_type
                    error.line_number = line_number
                    self.errors.store_error(error.with_entity_id(key_value))
                clean = result.clean
            values[f.name] = clean
            row.append(clean)

            for error in self.tracker.check_references_and_uniqueness(key_value, line_number, f, cell, table):
                if (
                    skip_service_reference
                    and f.name == "service_id"
                    and error.error_type is ErrorType.REFERENTIAL_INTEGRITY
                ):
                    continue
                self.errors.store_error(error)

        if table.has_conditional_requirements:
            self.errors.store_errors(
                self.tracker.check_conditionally_required_fields(table, line_number, values)
            )
        return row


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def load_feed(
    archive_path: Path,
    conn: psycopg.Connection,
    registry: SchemaRegistry | None = None,
    config: LoaderConfig | None = None,
) -> FeedLoadResult:
    """Load a GTFS zip into a new namespace and return what was loaded.

    Args:
        archive_path: Path to the GTFS zip file.
        conn:         Connection with autocommit disabled; committed per table.
        registry:     Table definitions to load (defaults to build_registry()).
        config:       Loader settings (defaults to LoaderConfig()).

    Returns:
        A FeedLoadResult with per-table row and error counts.

    Raises:
        FeedLoadError: If the archive cannot be read or storage fails. The
            namespace and its registry row are removed before raising.
    """
    return FeedLoader(conn, registry, config).load(archive_path)
