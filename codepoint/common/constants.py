"""Application constants."""

USER_AGENT = "codepoint-postcodes/1.0 (+postcode-lookup; contact: configured-email)"
COMMANDS = (
    "init-db",
    "import",
    "ingest",
    "serve",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
POSTCODE_MAX_LENGTH = 7
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "file",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)
