"""Postcode normalisation and validation for stored lookup keys."""

from __future__ import annotations

import re

from codepoint.common.constants import POSTCODE_MAX_LENGTH

NORMALISED_POSTCODE_RE = re.compile(r"^[a-z0-9]+$")
_WHITESPACE_RE = re.compile(r"\s+")


def normalise_postcode(raw: str | None) -> str:
    if raw is None:
        return ""
    return _WHITESPACE_RE.sub("", raw).lower()


def is_valid_postcode(value: str) -> bool:
    # Expects a normalised value: lowercase, no whitespace.
    if not NORMALISED_POSTCODE_RE.match(value):
        return False
    return len(value) <= POSTCODE_MAX_LENGTH


def normalise_search_term(raw: str | None) -> str:
    if raw is None:
        return ""
    return _WHITESPACE_RE.sub("", raw)
