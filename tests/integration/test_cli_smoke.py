from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import create_engine, text

from codepoint.cli import parse_args, run_command
from conftest import CSV_MEMBER_BYTES, write_zip


def _overlay(tmp_path: Path) -> Path:
    storage = tmp_path / "storage"
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "settings.yml").write_text(
        f"""storage:
  root: "{storage.as_posix()}"
database:
  url: "sqlite:///{(tmp_path / 'postcodes.db').as_posix()}"
ingest:
  workers: 1
""",
        encoding="utf-8",
    )
    return overlay


def _run(overlay: Path, *argv: str) -> int:
    args = parse_args([*argv, "--config-dir", "config", "--overlay-config-dir", str(overlay), "--run-id", "run-test"])
    return run_command(args)


@pytest.mark.integration
def test_cli_import_use_previous_loads_postcodes(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.delenv("CODEPOINT_DATABASE_URL", raising=False)
    overlay = _overlay(tmp_path)
    write_zip(tmp_path / "storage" / "postcodes.zip", {"Data/CSV/ab.csv": CSV_MEMBER_BYTES})

    assert _run(overlay, "init-db") == 0
    assert _run(overlay, "import", "--use-previous") == 0

    assert "1 CSV file extracted" in capsys.readouterr().out
    engine = create_engine(f"sqlite:///{(tmp_path / 'postcodes.db').as_posix()}")
    with engine.connect() as conn:
        postcodes = [row[0] for row in conn.execute(text("SELECT postcode FROM postcode ORDER BY postcode"))]
    engine.dispose()
    assert postcodes == ["ab101aa", "ab101ab", "ab101af"]
    assert (tmp_path / "storage" / "logs" / "run-test.log.jsonl").exists()


@pytest.mark.integration
def test_cli_import_without_archive_is_hard_failure(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.delenv("CODEPOINT_DATABASE_URL", raising=False)
    overlay = _overlay(tmp_path)

    assert _run(overlay, "init-db") == 0
    assert _run(overlay, "import", "--use-previous") == 20
    assert "Failed to extract postcodes" in capsys.readouterr().out


@pytest.mark.integration
def test_cli_ingest_missing_file_is_hard_failure(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("CODEPOINT_DATABASE_URL", raising=False)
    overlay = _overlay(tmp_path)

    assert _run(overlay, "init-db") == 0
    assert _run(overlay, "ingest", "--file", "zz.csv") == 20
