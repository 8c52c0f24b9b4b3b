"""Safe extraction of postcode CSV members from the Code-Point Open archive.

Only members under the expected directory with the allowed suffix are
considered. Each candidate is streamed to a flattened filename with a hard
byte cap and then content-sniffed; anything that is not really a CSV is
deleted again and not counted.
"""

from __future__ import annotations

import zipfile
from dataclasses import dataclass, field
from pathlib import Path

from codepoint.common.config_loader import ArchiveSettings
from codepoint.common.errors import ExtractionError
from codepoint.common.filetype import MIME_CSV, sniff_mime_type
from codepoint.common.fs import ensure_dir, remove_if_exists

COPY_CHUNK_SIZE = 1024 * 64


@dataclass
class ExtractionResult:
    files: list[str] = field(default_factory=list)
    skipped: int = 0
    rejected: int = 0

    @property
    def count(self) -> int:
        return len(self.files)


class _MemberTooLarge(Exception):
    pass


def _flattened_name(entry: str, expected_directory: str) -> str | None:
    relative = entry[len(expected_directory):]
    # Nested directories or traversal segments below the expected directory are not ours.
    if not relative or "/" in relative or "\\" in relative or relative in {".", ".."}:
        return None
    return relative


def _is_candidate(info: zipfile.ZipInfo, settings: ArchiveSettings) -> bool:
    if info.is_dir():
        return False
    return info.filename.startswith(settings.expected_directory) and info.filename.endswith(
        settings.allowed_suffix
    )


def _copy_capped(container: zipfile.ZipFile, info: zipfile.ZipInfo, target: Path, max_bytes: int) -> None:
    written = 0
    with container.open(info) as src, target.open("wb") as dst:
        while True:
            chunk = src.read(COPY_CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > max_bytes:
                raise _MemberTooLarge(info.filename)
            dst.write(chunk)


def _extract_member(
    container: zipfile.ZipFile,
    info: zipfile.ZipInfo,
    target: Path,
    settings: ArchiveSettings,
) -> bool:
    if info.file_size > settings.max_member_bytes:
        return False
    try:
        _copy_capped(container, info, target, settings.max_member_bytes)
    except (_MemberTooLarge, zipfile.BadZipFile, OSError):
        remove_if_exists(target)
        return False

    # A .csv suffix proves nothing; check the content before anything parses it.
    if sniff_mime_type(target) != MIME_CSV:
        remove_if_exists(target)
        return False
    return True


def extract_postcode_csvs(zip_path: Path, dest_dir: Path, settings: ArchiveSettings) -> ExtractionResult:
    try:
        container = zipfile.ZipFile(zip_path)
    except (zipfile.BadZipFile, OSError) as exc:
        raise ExtractionError("Failed to extract postcodes") from exc

    ensure_dir(dest_dir)
    result = ExtractionResult()
    with container:
        for info in container.infolist():
            if not _is_candidate(info, settings):
                result.skipped += 1
                continue

            filename = _flattened_name(info.filename, settings.expected_directory)
            if filename is None:
                result.skipped += 1
                continue

            if _extract_member(container, info, dest_dir / filename, settings):
                result.files.append(filename)
            else:
                result.rejected += 1

    return result
