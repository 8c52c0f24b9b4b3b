"""Minimal strict schema for YAML settings validation."""

from __future__ import annotations

from codepoint.common.errors import ConfigError

SECTION_KEYS: dict[str, set[str]] = {
    "source": {"base_url", "product", "format", "api_key", "trusted_url_prefix", "timeout_seconds"},
    "storage": {"root", "archive_filename", "csv_dirname"},
    "archive": {"expected_directory", "allowed_suffix", "max_member_bytes"},
    "database": {"url"},
    "ingest": {"batch_size", "workers"},
    "search": {"radius_km", "page_size"},
}

POSITIVE_NUMBERS = (
    ("source", "timeout_seconds"),
    ("archive", "max_member_bytes"),
    ("ingest", "batch_size"),
    ("ingest", "workers"),
    ("search", "radius_km"),
    ("search", "page_size"),
)


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def validate_settings_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    if not isinstance(cfg, dict):
        raise ConfigError("settings must be a mapping")

    _assert_required_keys(cfg, set(SECTION_KEYS), "settings")
    _assert_no_unknown_keys(cfg, set(SECTION_KEYS), "settings", allow_unknown)

    for section, keys in SECTION_KEYS.items():
        if not isinstance(cfg[section], dict):
            raise ConfigError(f"settings.{section} must be a mapping")
        _assert_required_keys(cfg[section], keys, section)
        _assert_no_unknown_keys(cfg[section], keys, section, allow_unknown)

    for section, key in POSITIVE_NUMBERS:
        value = cfg[section][key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError(f"{section}.{key} must be a positive number")

    if not str(cfg["archive"]["expected_directory"]).endswith("/"):
        raise ConfigError("archive.expected_directory must end with '/'")

    return cfg
