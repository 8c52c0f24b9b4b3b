from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from codepoint.common.config_loader import (
    ArchiveSettings,
    Settings,
    SourceSettings,
    StorageSettings,
)
from codepoint.store.db import build_engine, build_session_factory, create_schema

CSV_MEMBER_BYTES = (
    b'"AB101AA",10,394251,806376,"S92000003","","S08000020","","S12000033","S13002842"\n'
    b'"AB101AB",10,394232,806470,"S92000003","","S08000020","","S12000033","S13002842"\n'
    b'"AB10 1AF",10,394181,806429,"S92000003","","S08000020","","S12000033","S13002842"\n'
)


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    create_schema(engine)
    yield build_session_factory(engine)
    engine.dispose()


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = {
        "source": SourceSettings(
            base_url="https://api.os.uk/downloads/v1",
            product="CodePointOpen",
            format="CSV",
            api_key="test-key",
            trusted_url_prefix="https://api.os.uk/downloads/v1",
            timeout_seconds=30,
        ),
        "storage": StorageSettings(
            root=tmp_path / "storage",
            archive_filename="postcodes.zip",
            csv_dirname="postcode-csv-files",
        ),
        "archive": ArchiveSettings(
            expected_directory="Data/CSV/",
            allowed_suffix=".csv",
            max_member_bytes=1024 * 1024,
        ),
        "database_url": "sqlite://",
        "batch_size": 1000,
        "workers": 1,
        "radius_km": 0.5,
        "page_size": 20,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


def write_zip(path: Path, members: dict[str, bytes]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as container:
        for name, payload in members.items():
            container.writestr(name, payload)
    return path
