"""gtfs_etl.archive

Read access to a GTFS zip archive.

Tables are looked up by file name at the root of the archive; a table found
only inside a subdirectory is still returned, flagged as nested so that the
loader can record TABLE_IN_SUBDIRECTORY.

Usage:
    with GtfsArchive(Path("feed.zip")) as archive:
        entry = archive.find_entry("stops.txt")
        for record in archive.read_records(entry):
            ...
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from gtfs_etl.errors import FeedLoadError
from gtfs_etl.normalize import trim

log = logging.getLogger(__name__)

FEED_INFO_FILE = "feed_info.txt"


@dataclass(frozen=True)
class ArchiveEntry:
    name: str
    file_size: int
    nested: bool


@dataclass(frozen=True)
class UnreadableRecord:
    """Stands in for a record the CSV parser rejected (e.g. an oversized field)."""

    message: str


class GtfsArchive:
    """Thin wrapper over zipfile.ZipFile yielding decoded CSV rows."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        try:
            self._zip = zipfile.ZipFile(self.path)
        except (OSError, zipfile.BadZipFile) as exc:
            raise FeedLoadError(f"Cannot open GTFS archive {self.path}: {exc}") from exc

    def __enter__(self) -> GtfsArchive:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._zip.close()

    def names(self) -> list[str]:
        return self._zip.namelist()

    def find_entry(self, file_name: str) -> ArchiveEntry | None:
        """Locate *file_name* at the root, falling back to any subdirectory."""
        nested_match = None
        for info in self._zip.infolist():
            if info.is_dir():
                continue
            if info.filename == file_name:
                return ArchiveEntry(info.filename, info.file_size, nested=False)
            if nested_match is None and info.filename.endswith("/" + file_name):
                nested_match = info
        if nested_match is not None:
            log.warning("%s found in subdirectory (%s)", file_name, nested_match.filename)
            return ArchiveEntry(nested_match.filename, nested_match.file_size, nested=True)
        return None

    def read_records(self, entry: ArchiveEntry) -> Iterator[list[str] | UnreadableRecord]:
        """Yield every CSV record of *entry*, header first.

        Text is decoded as UTF-8 with an optional byte order mark; undecodable
        bytes are replaced rather than aborting the load. Cells are trimmed.
        A record the parser rejects is yielded as an UnreadableRecord and
        reading continues with the next one.
        """
        with self._zip.open(entry.name) as raw:
            text = io.TextIOWrapper(raw, encoding="utf-8-sig", errors="replace", newline="")
            reader = csv.reader(text)
            while True:
                try:
                    record = next(reader)
                except StopIteration:
                    return
                except csv.Error as exc:
                    log.warning("Unreadable record in %s: %s", entry.name, exc)
                    yield UnreadableRecord(str(exc))
                    continue
                yield [trim(cell) for cell in record]

    def peek_feed_info(self) -> tuple[str | None, str | None]:
        """Return (feed_id, feed_version) from the first feed_info row, if any."""
        entry = self.find_entry(FEED_INFO_FILE)
        if entry is None:
            return None, None
        records = self.read_records(entry)
        try:
            headers = next(records, None)
            first = next(records, None)
        finally:
            records.close()
        if not isinstance(headers, list) or not isinstance(first, list):
            return None, None
        row = dict(zip(headers, first))
        return row.get("feed_id") or None, row.get("feed_version") or None
