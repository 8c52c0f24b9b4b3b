"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from codepoint.common.fs import read_yaml
from codepoint.common.schema import validate_settings_config

SETTINGS_FILENAME = "settings.yml"
API_KEY_ENV = "CODEPOINT_API_KEY"
DATABASE_URL_ENV = "CODEPOINT_DATABASE_URL"


@dataclass(frozen=True)
class SourceSettings:
    base_url: str
    product: str
    format: str
    api_key: str
    trusted_url_prefix: str
    timeout_seconds: float


@dataclass(frozen=True)
class StorageSettings:
    root: Path
    archive_filename: str
    csv_dirname: str

    @property
    def archive_path(self) -> Path:
        return self.root / self.archive_filename

    @property
    def csv_dir(self) -> Path:
        return self.root / self.csv_dirname

    @property
    def log_dir(self) -> Path:
        return self.root / "logs"


@dataclass(frozen=True)
class ArchiveSettings:
    expected_directory: str
    allowed_suffix: str
    max_member_bytes: int


@dataclass(frozen=True)
class Settings:
    source: SourceSettings
    storage: StorageSettings
    archive: ArchiveSettings
    database_url: str
    batch_size: int
    workers: int
    radius_km: float
    page_size: int


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    return _deep_merge(base, overlay)


def _apply_env_overrides(cfg: dict) -> dict:
    api_key = os.getenv(API_KEY_ENV)
    if api_key:
        cfg["source"]["api_key"] = api_key
    database_url = os.getenv(DATABASE_URL_ENV)
    if database_url:
        cfg["database"]["url"] = database_url
    return cfg


def settings_from_config(cfg: dict) -> Settings:
    source = cfg["source"]
    storage = cfg["storage"]
    archive = cfg["archive"]
    return Settings(
        source=SourceSettings(
            base_url=str(source["base_url"]).rstrip("/"),
            product=str(source["product"]),
            format=str(source["format"]),
            api_key=str(source["api_key"] or ""),
            trusted_url_prefix=str(source["trusted_url_prefix"]),
            timeout_seconds=float(source["timeout_seconds"]),
        ),
        storage=StorageSettings(
            root=Path(storage["root"]),
            archive_filename=str(storage["archive_filename"]),
            csv_dirname=str(storage["csv_dirname"]),
        ),
        archive=ArchiveSettings(
            expected_directory=str(archive["expected_directory"]),
            allowed_suffix=str(archive["allowed_suffix"]),
            max_member_bytes=int(archive["max_member_bytes"]),
        ),
        database_url=str(cfg["database"]["url"]),
        batch_size=int(cfg["ingest"]["batch_size"]),
        workers=int(cfg["ingest"]["workers"]),
        radius_km=float(cfg["search"]["radius_km"]),
        page_size=int(cfg["search"]["page_size"]),
    )


def load_settings(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> Settings:
    overlay_path = None
    if overlay_config_dir is not None:
        overlay_path = overlay_config_dir / SETTINGS_FILENAME
    cfg = _load_yaml_with_overlay(config_dir / SETTINGS_FILENAME, overlay_path)
    cfg = validate_settings_config(cfg, allow_unknown=allow_unknown)
    return settings_from_config(_apply_env_overrides(cfg))
