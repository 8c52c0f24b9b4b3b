"""CSV ingestion worker: parse one area CSV and reconcile it with the postcode store.

Files follow the Code-Point Open ``<area>.csv`` naming, so every postcode in a
file shares a short prefix. Existing rows for that prefix are loaded once into
a lookup that lives for the whole run; staged inserts are flushed in batches
and moved into the lookup, so a postcode repeated within the file can never be
inserted twice.
"""

from __future__ import annotations

import csv
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from sqlalchemy.orm import Session, sessionmaker

from codepoint.common.errors import MissingInputError
from codepoint.common.logging import default_logger, log_event
from codepoint.common.postcode import is_valid_postcode, normalise_postcode
from codepoint.store.db import session_scope
from codepoint.store.postcodes import (
    GridPair,
    StagedPostcode,
    find_postcode,
    insert_postcodes,
    load_prefix_lookup,
    update_postcode,
)

DEFAULT_BATCH_SIZE = 1000
PREFIX_LENGTH = 2

# Fixed Code-Point Open column positions.
POSTCODE_COLUMN = 0
EASTINGS_COLUMN = 2
NORTHINGS_COLUMN = 3


@dataclass
class IngestStats:
    filename: str
    rows_read: int = 0
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    invalid: int = 0
    duplicates: int = 0


@dataclass(frozen=True)
class ParsedRow:
    postcode: str
    eastings: int
    northings: int


def lookup_prefix(filename: str) -> str:
    return Path(filename).stem.lower()[:PREFIX_LENGTH]


def parse_row(row: list[str]) -> ParsedRow | None:
    if len(row) <= NORTHINGS_COLUMN:
        return None
    postcode = normalise_postcode(row[POSTCODE_COLUMN])
    if not is_valid_postcode(postcode):
        return None
    try:
        eastings = int(row[EASTINGS_COLUMN].strip())
        northings = int(row[NORTHINGS_COLUMN].strip())
    except ValueError:
        return None
    return ParsedRow(postcode=postcode, eastings=eastings, northings=northings)


def _iter_csv_rows(path: Path) -> Iterator[list[str]]:
    with path.open("r", encoding="utf-8-sig", newline="") as handle:
        yield from csv.reader(handle)


class _IngestRun:
    def __init__(self, session: Session, prefix: str, batch_size: int, stats: IngestStats) -> None:
        self.session = session
        self.prefix = prefix
        self.batch_size = batch_size
        self.stats = stats
        self.lookup: dict[str, GridPair] = load_prefix_lookup(session, prefix)
        self.staged: dict[str, StagedPostcode] = {}

    def _known(self, postcode: str) -> GridPair | None:
        if postcode in self.lookup:
            return self.lookup[postcode]
        if postcode.startswith(self.prefix):
            return None
        # Outside the preloaded prefix; ask the store so the unique key holds.
        existing = find_postcode(self.session, postcode)
        if existing is None:
            return None
        self.lookup[postcode] = (existing.eastings, existing.northings)
        return self.lookup[postcode]

    def apply(self, row: ParsedRow) -> None:
        coords = (row.eastings, row.northings)

        if row.postcode in self.staged:
            self.stats.duplicates += 1
            self.staged[row.postcode] = StagedPostcode(row.postcode, row.eastings, row.northings)
            return

        known = self._known(row.postcode)
        if known is None:
            self.staged[row.postcode] = StagedPostcode(row.postcode, row.eastings, row.northings)
            if len(self.staged) >= self.batch_size:
                self.flush()
            return

        if known == coords:
            self.stats.unchanged += 1
            return

        update_postcode(self.session, row.postcode, row.eastings, row.northings)
        self.session.commit()
        self.lookup[row.postcode] = coords
        self.stats.updated += 1

    def flush(self) -> None:
        if not self.staged:
            return
        batch = list(self.staged.values())
        self.stats.inserted += insert_postcodes(self.session, batch)
        self.session.commit()
        for item in batch:
            self.lookup[item.postcode] = (item.eastings, item.northings)
        self.staged.clear()


def ingest_csv_file(
    filename: str,
    *,
    csv_dir: Path,
    session_factory: sessionmaker[Session],
    batch_size: int = DEFAULT_BATCH_SIZE,
    logger: logging.Logger | None = None,
) -> IngestStats:
    logger = logger or default_logger()
    path = csv_dir / filename
    if not path.is_file():
        raise MissingInputError(f"Could not find postcode csv to parse: {filename}")

    started = time.monotonic()
    stats = IngestStats(filename=filename)
    log_event(logger, "ingest start", stage="ingest", file=filename, event="INGEST_START", status="ok")

    with session_scope(session_factory) as session:
        run = _IngestRun(session, lookup_prefix(filename), batch_size, stats)
        for raw_row in _iter_csv_rows(path):
            stats.rows_read += 1
            parsed = parse_row(raw_row)
            if parsed is None:
                stats.invalid += 1
                continue
            run.apply(parsed)
        run.flush()

    log_event(
        logger,
        f"ingest end: {stats.inserted} inserted, {stats.updated} updated, {stats.invalid} invalid",
        stage="ingest",
        file=filename,
        event="INGEST_END",
        status="ok",
        rows_in=stats.rows_read,
        rows_out=stats.inserted + stats.updated,
        duration_ms=int((time.monotonic() - started) * 1000),
    )
    return stats
