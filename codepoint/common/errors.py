"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for import and lookup failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class StageError(PipelineError):
    """Raised for stage failures that should halt the run."""

    error_code = "STAGE_ERROR"


class UpstreamError(StageError):
    """Raised when the postcode source cannot be reached or returns something unexpected."""

    error_code = "UPSTREAM_UNAVAILABLE"


class ExtractionError(StageError):
    """Raised when the staged archive is missing or cannot be opened."""

    error_code = "EXTRACTION_FAILED"


class MissingInputError(StageError):
    """Raised when an ingestion task cannot find its CSV file."""

    error_code = "MISSING_INPUT"
