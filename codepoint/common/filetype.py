"""Content-based file type sniffing.

Only the MIME types the importer cares about are distinguished: empty files,
binary blobs, delimited text (``text/csv``) and any other text.
"""

from __future__ import annotations

import csv
from pathlib import Path

SNIFF_BYTES = 64 * 1024
SNIFF_LINES = 50
CSV_DELIMITERS = ",;\t|"

MIME_EMPTY = "application/x-empty"
MIME_BINARY = "application/octet-stream"
MIME_CSV = "text/csv"
MIME_TEXT = "text/plain"


def _read_sample(path: Path) -> bytes:
    with path.open("rb") as f:
        sample = f.read(SNIFF_BYTES + 1)
    if len(sample) > SNIFF_BYTES:
        # Drop the partial trailing line so multibyte characters are not split.
        sample = sample[:SNIFF_BYTES]
        last_newline = sample.rfind(b"\n")
        if last_newline > 0:
            sample = sample[:last_newline]
    return sample


def _looks_delimited(text: str) -> bool:
    lines = [line for line in text.splitlines() if line.strip()][:SNIFF_LINES]
    if not lines:
        return False
    try:
        dialect = csv.Sniffer().sniff("\n".join(lines), delimiters=CSV_DELIMITERS)
    except csv.Error:
        return False

    widths = {len(row) for row in csv.reader(lines, dialect)}
    return len(widths) == 1 and widths.pop() >= 2


def sniff_mime_type(path: Path) -> str:
    sample = _read_sample(path)
    if not sample:
        return MIME_EMPTY
    if b"\x00" in sample:
        return MIME_BINARY
    try:
        text = sample.decode("utf-8-sig")
    except UnicodeDecodeError:
        return MIME_BINARY
    if _looks_delimited(text):
        return MIME_CSV
    return MIME_TEXT
