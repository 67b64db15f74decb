"""gtfs_etl.cli

Unified GTFS loader CLI.

Modes:
  load    load a GTFS zip into a new namespace (--gtfs-path)
  export  write a namespace back out as a GTFS zip (--namespace, --out-path)
  errors  print the error summary of a namespace (--namespace)

Usage:
    gtfs-etl --mode load --db-dsn "$DB_DSN" --gtfs-path feed.zip
    gtfs-etl --mode export --namespace abcdefghijkl --out-path out/feed.zip
    gtfs-etl --mode errors --namespace abcdefghijkl
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import click
import psycopg

from gtfs_etl.config import ConfigValidationError, LoaderConfig, load_loader_config
from gtfs_etl.errors import FeedLoadError, summarize_errors
from gtfs_etl.exporter import export_feed
from gtfs_etl.feeds import drop_feed_namespace, namespace_exists
from gtfs_etl.loader import load_feed


# ---------------------------------------------------------------------------
# Run report
# ---------------------------------------------------------------------------

def write_run_report(
    run_id: str,
    started_at: str,
    mode: str,
    dry_run: bool,
    source_paths: dict[str, str | None],
    result: dict[str, Any],
    report_dir: str = "./artifacts/reports",
) -> Path:
    report = {
        "run_id": run_id,
        "mode": mode,
        "started_at": started_at,
        "finished_at": datetime.now(timezone.utc).isoformat(),
        "dry_run": dry_run,
        **source_paths,
        "result": result,
    }
    report_path = Path(report_dir) / f"{run_id}.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str))
    return report_path


# ---------------------------------------------------------------------------
# Flag validation
# ---------------------------------------------------------------------------

def _require(run_id: str, mode: str, **flags: Any) -> None:
    missing = [f"--{name.replace('_', '-')}" for name, value in flags.items() if not value]
    if missing:
        click.echo(f"[{run_id}] FATAL: {mode} mode requires: {', '.join(missing)}", err=True)
        sys.exit(1)


def _connect(run_id: str, db_dsn: str) -> psycopg.Connection:
    try:
        return psycopg.connect(db_dsn, autocommit=False)
    except psycopg.OperationalError as e:
        click.echo(f"[{run_id}] FATAL: cannot connect to database: {e}", err=True)
        sys.exit(1)


def _resolve_config(
    run_id: str,
    config_path: str | None,
    write_mode: str | None,
    batch_size: int | None,
) -> LoaderConfig:
    try:
        config = load_loader_config(Path(config_path)) if config_path else LoaderConfig()
        return config.with_overrides(write_mode=write_mode, batch_size=batch_size)
    except (ConfigValidationError, OSError) as e:
        click.echo(f"[{run_id}] FATAL: invalid config: {e}", err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------

def _run_load(
    run_id: str,
    started_at: str,
    db_dsn: str,
    gtfs_path: str,
    config: LoaderConfig,
    dry_run: bool,
) -> None:
    conn = _connect(run_id, db_dsn)
    try:
        result = load_feed(Path(gtfs_path), conn, config=config)
        click.echo(
            f"[{run_id}] Loaded {result.row_count} rows into namespace {result.namespace} "
            f"({result.error_count} errors, {result.load_time_seconds:.1f}s)"
        )
        if dry_run:
            drop_feed_namespace(conn, result.namespace)
            conn.commit()
            click.echo(f"[{run_id}] [dry-run] Namespace {result.namespace} dropped.")
    except (FeedLoadError, psycopg.Error) as e:
        click.echo(f"[{run_id}] FATAL: {e}", err=True)
        sys.exit(1)
    finally:
        conn.close()

    report_path = write_run_report(
        run_id, started_at, "load", dry_run,
        {"gtfs_path": gtfs_path},
        result.to_dict(),
        report_dir=config.report_dir,
    )
    click.echo(f"[{run_id}] Run report: {report_path}")


def _run_export(run_id: str, db_dsn: str, namespace: str, out_path: str) -> None:
    conn = _connect(run_id, db_dsn)
    try:
        result = export_feed(conn, namespace, Path(out_path))
    except (FeedLoadError, psycopg.Error) as e:
        click.echo(f"[{run_id}] FATAL: {e}", err=True)
        sys.exit(1)
    finally:
        conn.close()
    for table_name, row_count in result.tables.items():
        click.echo(f"[{run_id}]   {table_name}: {row_count} rows")
    click.echo(f"[{run_id}] Exported {len(result.tables)} tables to {result.out_path}")


def _run_errors(run_id: str, db_dsn: str, namespace: str) -> None:
    conn = _connect(run_id, db_dsn)
    try:
        if not namespace_exists(conn, namespace):
            click.echo(f"[{run_id}] FATAL: namespace {namespace} does not exist", err=True)
            sys.exit(1)
        summary = summarize_errors(conn, namespace)
    finally:
        conn.close()
    total = sum(count for _, count in summary)
    click.echo(f"[{run_id}] {total} errors in namespace {namespace}")
    for error_type, count in summary:
        click.echo(f"[{run_id}]   {error_type}: {count}")


# ---------------------------------------------------------------------------
# Unified CLI
# ---------------------------------------------------------------------------

@click.command()
@click.option(
    "--mode",
    default="load",
    type=click.Choice(["load", "export", "errors"]),
    show_default=True,
    help="Operation to run",
)
@click.option("--db-dsn", envvar="DB_DSN", required=True, help="PostgreSQL DSN (or env DB_DSN)")
@click.option("--gtfs-path", default=None, type=click.Path(), help="[load] GTFS zip archive")
@click.option("--namespace", default=None, help="[export|errors] Namespace of a loaded feed")
@click.option("--out-path", default=None, type=click.Path(), help="[export] Output zip path")
@click.option("--config", "config_path", default=None, type=click.Path(), help="[load] Loader YAML config")
@click.option(
    "--write-mode",
    default=None,
    type=click.Choice(["copy", "insert"]),
    help="[load] Override config write_mode",
)
@click.option("--batch-size", default=None, type=int, help="[load] Override config batch_size")
@click.option("--dry-run", is_flag=True, default=False, help="[load] Load, report, then drop the namespace")
@click.option("--run-id", default=None, help="Override UUID for log correlation")
def main(
    mode: str,
    db_dsn: str,
    gtfs_path: str | None,
    namespace: str | None,
    out_path: str | None,
    config_path: str | None,
    write_mode: str | None,
    batch_size: int | None,
    dry_run: bool,
    run_id: str | None,
) -> None:
    """GTFS feed loader and validator."""
    run_id = run_id or str(uuid.uuid4())
    started_at = datetime.now(timezone.utc).isoformat()

    click.echo(f"[{run_id}] Starting {mode} run (dry_run={dry_run})")

    if mode == "load":
        _require(run_id, mode, gtfs_path=gtfs_path)
        config = _resolve_config(run_id, config_path, write_mode, batch_size)
        logging.basicConfig(
            level=config.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        _run_load(run_id, started_at, db_dsn, gtfs_path, config, dry_run)
    elif mode == "export":
        _require(run_id, mode, namespace=namespace, out_path=out_path)
        _run_export(run_id, db_dsn, namespace, out_path)
    elif mode == "errors":
        _require(run_id, mode, namespace=namespace)
        _run_errors(run_id, db_dsn, namespace)


if __name__ == "__main__":
    main()
