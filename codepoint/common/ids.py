"""Run identifiers for CLI invocations."""

from __future__ import annotations

import secrets

from codepoint.common.time_utils import utc_now


def generate_run_id() -> str:
    # Timestamp keeps ids sortable; suffix separates workers started in the same second.
    return f"run-{utc_now():%Y%m%dT%H%M%SZ}-{secrets.token_hex(3)}"
