"""Import orchestration: check the source, fetch and register, extract and dispatch."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from sqlalchemy.orm import Session, sessionmaker

from codepoint.common.config_loader import Settings
from codepoint.common.errors import ExtractionError, UpstreamError
from codepoint.common.fs import md5_file, remove_if_exists
from codepoint.common.http import HttpClient, HttpRequestError, TimeoutConfig
from codepoint.common.logging import default_logger, log_event
from codepoint.importer.archive import extract_postcode_csvs
from codepoint.importer.source import SourceDescriptor, fetch_source_descriptor, is_trusted_url
from codepoint.importer.tasks import TaskQueue
from codepoint.store.db import session_scope
from codepoint.store.imports import find_import_by_hash, record_import

STATUS_ALREADY_IMPORTED = "already_imported"
STATUS_DISPATCHED = "dispatched"
STATUS_NO_FILES = "no_files"


@dataclass
class ImportResult:
    status: str
    extracted: int = 0
    files: list[str] = field(default_factory=list)
    descriptor: SourceDescriptor | None = None
    fetched: bool = False


def _already_imported(session_factory: sessionmaker[Session], descriptor: SourceDescriptor) -> bool:
    with session_scope(session_factory) as session:
        return find_import_by_hash(session, descriptor.content_hash) is not None


def fetch_archive(http_client: HttpClient, descriptor: SourceDescriptor, settings: Settings) -> None:
    """Download the archive next to its final location and swap it in once verified."""
    target = settings.storage.archive_path
    partial = target.with_name(target.name + ".part")
    try:
        written = http_client.download(
            descriptor.url,
            partial,
            timeout=TimeoutConfig(connect=20, read=settings.source.timeout_seconds),
        )
    except HttpRequestError as exc:
        remove_if_exists(partial)
        raise UpstreamError("Failed to download postcode data") from exc

    if written != descriptor.size or md5_file(partial) != descriptor.content_hash:
        remove_if_exists(partial)
        raise UpstreamError("Downloaded postcode data does not match its published checksum")
    os.replace(partial, target)


def _register(session_factory: sessionmaker[Session], descriptor: SourceDescriptor) -> None:
    with session_scope(session_factory) as session:
        record_import(session, descriptor.content_hash, descriptor.size)
        session.commit()


def run_import(
    settings: Settings,
    *,
    http_client: HttpClient,
    session_factory: sessionmaker[Session],
    queue: TaskQueue,
    use_previous: bool = False,
    force: bool = False,
    logger: logging.Logger | None = None,
) -> ImportResult:
    logger = logger or default_logger()
    descriptor: SourceDescriptor | None = None
    fetched = False

    if not use_previous:
        log_event(logger, "checking remote source", stage="check", event="CHECK_REMOTE", status="ok")
        descriptor = fetch_source_descriptor(http_client, settings.source)

        if _already_imported(session_factory, descriptor) and not force:
            log_event(logger, "archive already imported", stage="check", event="ALREADY_IMPORTED", status="ok")
            return ImportResult(status=STATUS_ALREADY_IMPORTED, descriptor=descriptor)

        if is_trusted_url(descriptor.url, settings.source.trusted_url_prefix):
            fetch_archive(http_client, descriptor, settings)
            _register(session_factory, descriptor)
            fetched = True
            log_event(logger, "archive fetched", stage="fetch", event="FETCHED", status="ok")
        else:
            log_event(
                logger,
                f"refusing download from untrusted url: {descriptor.url}",
                level=logging.WARNING,
                stage="fetch",
                event="UNTRUSTED_SOURCE",
                status="skipped",
            )

    archive_path = settings.storage.archive_path
    if not archive_path.is_file():
        raise ExtractionError("Failed to extract postcodes")

    extraction = extract_postcode_csvs(archive_path, settings.storage.csv_dir, settings.archive)
    log_event(
        logger,
        f"{extraction.count} CSV files extracted",
        stage="extract",
        event="EXTRACTED",
        status="ok" if extraction.count else "empty",
        rows_out=extraction.count,
    )

    for filename in extraction.files:
        queue.enqueue(filename)

    status = STATUS_DISPATCHED if extraction.count else STATUS_NO_FILES
    return ImportResult(
        status=status,
        extracted=extraction.count,
        files=list(extraction.files),
        descriptor=descriptor,
        fetched=fetched,
    )
