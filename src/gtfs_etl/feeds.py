"""gtfs_etl.feeds

Registry of loaded feeds: one row in public.feeds per namespace.

A row is written as soon as a namespace is created so that an interrupted
load can be found and dropped; drop_feed_namespace() removes both the schema
and the row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any

import psycopg
from psycopg import sql

log = logging.getLogger(__name__)


@dataclass
class FeedRecord:
    namespace: str
    md5: str | None
    sha1: str | None
    feed_id: str | None
    feed_version: str | None
    filename: str | None
    loaded_date: datetime | None
    snapshot_of: str | None
    deleted: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_FEED_COLUMNS = (
    "namespace, md5, sha1, feed_id, feed_version, filename, loaded_date, snapshot_of, deleted"
)


def create_feed_registry(conn: psycopg.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS public.feeds (
          namespace varchar PRIMARY KEY,
          md5 varchar,
          sha1 varchar,
          feed_id varchar,
          feed_version varchar,
          filename varchar,
          loaded_date timestamp,
          snapshot_of varchar,
          deleted boolean NOT NULL DEFAULT false
        )
        """
    )


def register_feed(
    conn: psycopg.Connection,
    namespace: str,
    md5: str | None,
    sha1: str | None,
    feed_id: str | None,
    feed_version: str | None,
    filename: str | None,
) -> None:
    """Insert the registry row for a freshly created namespace. Does not commit."""
    conn.execute(
        f"""
        INSERT INTO public.feeds ({_FEED_COLUMNS})
        VALUES (%s, %s, %s, %s, %s, %s, now(), NULL, false)
        """,
        (namespace, md5, sha1, feed_id, feed_version, filename),
    )


def get_feed(conn: psycopg.Connection, namespace: str) -> FeedRecord | None:
    row = conn.execute(
        f"SELECT {_FEED_COLUMNS} FROM public.feeds WHERE namespace = %s",
        (namespace,),
    ).fetchone()
    return FeedRecord(*row) if row else None


def list_feeds(conn: psycopg.Connection, include_deleted: bool = False) -> list[FeedRecord]:
    query = f"SELECT {_FEED_COLUMNS} FROM public.feeds"
    if not include_deleted:
        query += " WHERE NOT deleted"
    rows = conn.execute(query + " ORDER BY loaded_date, namespace").fetchall()
    return [FeedRecord(*r) for r in rows]


def namespace_exists(conn: psycopg.Connection, namespace: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM information_schema.schemata WHERE schema_name = %s",
        (namespace,),
    ).fetchone()
    return row is not None


def drop_feed_namespace(conn: psycopg.Connection, namespace: str) -> None:
    """Drop the namespace schema (cascading) and its registry row. Does not commit."""
    log.info("Dropping feed namespace %s", namespace)
    conn.execute(sql.SQL("DROP SCHEMA IF EXISTS {} CASCADE").format(sql.Identifier(namespace)))
    registry = conn.execute("SELECT to_regclass('public.feeds')").fetchone()
    if registry and registry[0] is not None:
        conn.execute("DELETE FROM public.feeds WHERE namespace = %s", (namespace,))
