"""gtfs_etl.exporter

Write a loaded namespace back out as a GTFS zip.

Each table present in the namespace becomes <table>.txt, produced by
PostgreSQL itself through COPY (...) TO STDOUT WITH (FORMAT csv, HEADER):
times are rendered back to HH:MM:SS, doubles are rounded to their output
precision, and booleans are written as 0/1. Columns that were not part of
the schema (kept as text during load) are exported verbatim.
"""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import psycopg
from psycopg import sql

from gtfs_etl.errors import FeedLoadError
from gtfs_etl.feeds import namespace_exists
from gtfs_etl.schema import SchemaRegistry, Table, build_registry

log = logging.getLogger(__name__)


@dataclass
class ExportResult:
    namespace: str
    out_path: str
    tables: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"namespace": self.namespace, "out_path": self.out_path, "tables": dict(self.tables)}


def existing_columns(conn: psycopg.Connection, namespace: str, table_name: str) -> list[str]:
    """Column names of namespace.table in stored order, excluding id."""
    rows = conn.execute(
        """
        SELECT column_name
        FROM information_schema.columns
        WHERE table_schema = %s AND table_name = %s AND column_name <> 'id'
        ORDER BY ordinal_position
        """,
        (namespace, table_name),
    ).fetchall()
    return [r[0] for r in rows]


def export_select(table: Table, namespace: str, columns: list[str]) -> sql.Composed:
    """SELECT rendering each stored column back to its GTFS text form."""
    expressions = []
    for name in columns:
        column = sql.Identifier(name)
        # Unknown columns were stored as text and go out unchanged.
        expression = table.field_for_name(name).export_expression(column) if table.has_field(name) else column
        expressions.append(sql.SQL("{} AS {}").format(expression, column))
    return sql.SQL("SELECT {} FROM {} ORDER BY id").format(
        sql.SQL(", ").join(expressions), table.qualified_name(namespace)
    )


def export_table(conn: psycopg.Connection, table: Table, namespace: str, columns: list[str]) -> tuple[bytes, int]:
    """Return (csv_bytes, row_count) for one table."""
    query = sql.SQL("COPY ({}) TO STDOUT WITH (FORMAT csv, HEADER)").format(
        export_select(table, namespace, columns)
    )
    chunks: list[bytes] = []
    with conn.cursor() as cur:
        with cur.copy(query) as copy:
            for data in copy:
                chunks.append(bytes(data))
    row_count = conn.execute(
        sql.SQL("SELECT count(*) FROM {}").format(table.qualified_name(namespace))
    ).fetchone()[0]
    return b"".join(chunks), int(row_count)


def export_feed(
    conn: psycopg.Connection,
    namespace: str,
    out_path: Path,
    registry: SchemaRegistry | None = None,
) -> ExportResult:
    """Export every registry table present in *namespace* to a zip at *out_path*.

    Raises:
        FeedLoadError: If the namespace does not exist.
    """
    if registry is None:
        registry = build_registry()
    if not namespace_exists(conn, namespace):
        raise FeedLoadError(f"Namespace {namespace} does not exist")

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    result = ExportResult(namespace=namespace, out_path=str(out_path))
    with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for table in registry.load_order:
            columns = existing_columns(conn, namespace, table.name)
            if not columns:
                log.info("Table %s not in namespace %s. Skipping.", table.name, namespace)
                continue
            data, row_count = export_table(conn, table, namespace, columns)
            zf.writestr(table.file_name, data)
            result.tables[table.name] = row_count
            log.info("Exported %d rows of %s", row_count, table.name)
    # Read-only transaction; release it.
    conn.rollback()
    return result
