from __future__ import annotations

import hashlib
import io
import zipfile
from pathlib import Path

import pytest
from sqlalchemy import func, select

from codepoint.common.errors import ExtractionError, UpstreamError
from codepoint.common.http import HttpRequestError
from codepoint.importer.orchestrator import (
    STATUS_ALREADY_IMPORTED,
    STATUS_DISPATCHED,
    STATUS_NO_FILES,
    run_import,
)
from codepoint.store.imports import record_import
from codepoint.store.models import PostcodeImport
from conftest import CSV_MEMBER_BYTES, make_settings, write_zip

TRUSTED_URL = "https://api.os.uk/downloads/v1/products/CodePointOpen/downloads?area=GB&format=CSV&redirect"


def _zip_bytes(members: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as container:
        for name, payload in members.items():
            container.writestr(name, payload)
    return buffer.getvalue()


ARCHIVE_BYTES = _zip_bytes({"Data/CSV/ab.csv": CSV_MEMBER_BYTES, "Doc/readme.txt": b"docs"})


class FakeHttpClient:
    def __init__(self, payload=None, archive: bytes = ARCHIVE_BYTES, error: Exception | None = None):
        self.payload = payload
        self.archive = archive
        self.error = error
        self.downloads: list[str] = []

    def get_json(self, url: str, **_kwargs):
        if self.error is not None:
            raise self.error
        return self.payload

    def download(self, url: str, target_path: Path, **_kwargs) -> int:
        self.downloads.append(url)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        target_path.write_bytes(self.archive)
        return len(self.archive)


class CollectingQueue:
    def __init__(self):
        self.items: list[str] = []

    def enqueue(self, filename: str) -> None:
        self.items.append(filename)


def _descriptor(url: str = TRUSTED_URL, archive: bytes = ARCHIVE_BYTES) -> list[dict]:
    return [{"url": url, "md5": hashlib.md5(archive).hexdigest(), "size": len(archive)}]


def _ledger_count(session_factory) -> int:
    with session_factory() as session:
        return session.scalar(select(func.count()).select_from(PostcodeImport))


@pytest.mark.integration
def test_new_archive_is_fetched_registered_and_dispatched(tmp_path: Path, session_factory):
    settings = make_settings(tmp_path)
    client = FakeHttpClient(_descriptor())
    queue = CollectingQueue()

    result = run_import(settings, http_client=client, session_factory=session_factory, queue=queue)

    assert result.status == STATUS_DISPATCHED
    assert result.fetched is True
    assert result.extracted == 1
    assert queue.items == ["ab.csv"]
    assert client.downloads == [TRUSTED_URL]
    assert settings.storage.archive_path.read_bytes() == ARCHIVE_BYTES
    assert (settings.storage.csv_dir / "ab.csv").exists()
    assert _ledger_count(session_factory) == 1


@pytest.mark.integration
def test_already_imported_archive_short_circuits(tmp_path: Path, session_factory):
    settings = make_settings(tmp_path)
    descriptor = _descriptor()
    with session_factory() as session:
        record_import(session, descriptor[0]["md5"], descriptor[0]["size"])
        session.commit()
    client = FakeHttpClient(descriptor)
    queue = CollectingQueue()

    result = run_import(settings, http_client=client, session_factory=session_factory, queue=queue)

    assert result.status == STATUS_ALREADY_IMPORTED
    assert client.downloads == []
    assert queue.items == []
    assert not settings.storage.csv_dir.exists()


@pytest.mark.integration
def test_force_reimports_and_refreshes_single_ledger_row(tmp_path: Path, session_factory):
    settings = make_settings(tmp_path)
    descriptor = _descriptor()
    with session_factory() as session:
        record_import(session, descriptor[0]["md5"], descriptor[0]["size"])
        session.commit()
    queue = CollectingQueue()

    result = run_import(
        settings,
        http_client=FakeHttpClient(descriptor),
        session_factory=session_factory,
        queue=queue,
        force=True,
    )

    assert result.status == STATUS_DISPATCHED
    assert queue.items == ["ab.csv"]
    assert _ledger_count(session_factory) == 1


@pytest.mark.integration
def test_use_previous_skips_remote_check(tmp_path: Path, session_factory):
    settings = make_settings(tmp_path)
    write_zip(settings.storage.archive_path, {"Data/CSV/ab.csv": CSV_MEMBER_BYTES})
    client = FakeHttpClient(error=AssertionError("remote must not be called"))
    queue = CollectingQueue()

    result = run_import(
        settings,
        http_client=client,
        session_factory=session_factory,
        queue=queue,
        use_previous=True,
    )

    assert result.status == STATUS_DISPATCHED
    assert result.descriptor is None
    assert queue.items == ["ab.csv"]
    assert _ledger_count(session_factory) == 0


@pytest.mark.integration
def test_untrusted_download_url_falls_through_to_staged_archive(tmp_path: Path, session_factory):
    settings = make_settings(tmp_path)
    write_zip(settings.storage.archive_path, {"Data/CSV/mk.csv": CSV_MEMBER_BYTES})
    client = FakeHttpClient(_descriptor(url="https://api.os.uk.evil.example/postcodes.zip"))
    queue = CollectingQueue()

    result = run_import(settings, http_client=client, session_factory=session_factory, queue=queue)

    assert client.downloads == []
    assert result.fetched is False
    assert queue.items == ["mk.csv"]
    assert _ledger_count(session_factory) == 0


@pytest.mark.integration
def test_remote_failure_aborts_without_side_effects(tmp_path: Path, session_factory):
    settings = make_settings(tmp_path)
    queue = CollectingQueue()

    with pytest.raises(UpstreamError, match="Failed to access postcode data"):
        run_import(
            settings,
            http_client=FakeHttpClient(error=HttpRequestError("HTTP status: 500")),
            session_factory=session_factory,
            queue=queue,
        )

    assert queue.items == []
    assert _ledger_count(session_factory) == 0


@pytest.mark.integration
def test_empty_descriptor_list_aborts(tmp_path: Path, session_factory):
    settings = make_settings(tmp_path)

    with pytest.raises(UpstreamError, match="Unexpected data"):
        run_import(
            settings,
            http_client=FakeHttpClient([]),
            session_factory=session_factory,
            queue=CollectingQueue(),
        )


@pytest.mark.integration
def test_checksum_mismatch_discards_download(tmp_path: Path, session_factory):
    settings = make_settings(tmp_path)
    descriptor = [{"url": TRUSTED_URL, "md5": "0" * 32, "size": len(ARCHIVE_BYTES)}]

    with pytest.raises(UpstreamError):
        run_import(
            settings,
            http_client=FakeHttpClient(descriptor),
            session_factory=session_factory,
            queue=CollectingQueue(),
        )

    assert not settings.storage.archive_path.exists()
    assert not settings.storage.archive_path.with_name("postcodes.zip.part").exists()
    assert _ledger_count(session_factory) == 0


@pytest.mark.integration
def test_corrupt_archive_dispatches_nothing(tmp_path: Path, session_factory):
    settings = make_settings(tmp_path)
    settings.storage.root.mkdir(parents=True)
    settings.storage.archive_path.write_bytes(b"not a zip")
    queue = CollectingQueue()

    with pytest.raises(ExtractionError):
        run_import(
            settings,
            http_client=FakeHttpClient(),
            session_factory=session_factory,
            queue=queue,
            use_previous=True,
        )
    assert queue.items == []


@pytest.mark.integration
def test_missing_staged_archive_with_use_previous(tmp_path: Path, session_factory):
    settings = make_settings(tmp_path)

    with pytest.raises(ExtractionError):
        run_import(
            settings,
            http_client=FakeHttpClient(),
            session_factory=session_factory,
            queue=CollectingQueue(),
            use_previous=True,
        )


@pytest.mark.integration
def test_zero_extracted_files_is_reported_not_raised(tmp_path: Path, session_factory):
    settings = make_settings(tmp_path)
    write_zip(settings.storage.archive_path, {"Doc/readme.txt": b"docs"})
    queue = CollectingQueue()

    result = run_import(
        settings,
        http_client=FakeHttpClient(),
        session_factory=session_factory,
        queue=queue,
        use_previous=True,
    )

    assert result.status == STATUS_NO_FILES
    assert result.extracted == 0
    assert queue.items == []
