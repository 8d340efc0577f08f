"""
Error definitions for the delivery pipeline.

Rules:
- No silent failure: policy violations raise PolicyRejectError with a code
- Pure helpers (naming, normalisation, rules) raise ValueError/TypeError
- Only the export orchestrator turns an exception into a failed job
"""

from typing import Any


class PolicyRejectError(Exception):
    """
    Raised when an export must stop because a pipeline policy was violated.

    Used only where an immediate stop is required:
    - incomplete or invalid export configuration
    - sequence space exhausted
    - unsupported source file type
    - copy retries exhausted
    - blocking validation errors
    - output lock timeout

    Usage:
        raise PolicyRejectError("CONFIG_INVALID", field="project_id")
    """

    def __init__(self, code: str, **context: Any) -> None:
        self.code = code
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {ctx_str}" if ctx_str else f"[{self.code}]"

    def to_dict(self) -> dict[str, Any]:
        """For logs / JSON serialisation."""
        return {
            "code": self.code,
            **self.context,
        }


class ExportCancelledError(Exception):
    """Raised inside the pipeline when a cancellation request is observed."""

    pass


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """Job-level error codes. Keep in sync with the runbook in README."""

    # === Configuration / preparing ===
    CONFIG_INVALID = "CONFIG_INVALID"
    NO_PHOTOS_SELECTED = "NO_PHOTOS_SELECTED"
    INVALID_SNAPSHOT = "INVALID_SNAPSHOT"
    SEQUENCE_EXHAUSTED = "SEQUENCE_EXHAUSTED"
    UNSUPPORTED_FILE_TYPE = "UNSUPPORTED_FILE_TYPE"

    # === Output directory ===
    OUTPUT_LOCK_TIMEOUT = "OUTPUT_LOCK_TIMEOUT"
    JOB_JSON_CORRUPT = "JOB_JSON_CORRUPT"

    # === Copying ===
    COPY_FAILED = "COPY_FAILED"

    # === Validation ===
    VALIDATION_FAILED = "VALIDATION_FAILED"

    # === Archive ===
    ARCHIVE_FAILED = "ARCHIVE_FAILED"
    RENDER_FAILED = "RENDER_FAILED"

    # === Lifecycle ===
    CANCELLED = "CANCELLED"
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    JOB_TERMINAL = "JOB_TERMINAL"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ValidationCodes:
    """Stable finding codes emitted by the validation rules."""

    # === Errors (blocking) ===
    INVALID_FILE_NAME = "INVALID_FILE_NAME"
    SEQUENCE_GAP = "SEQUENCE_GAP"
    MISSING_DRAWING_FILE = "MISSING_DRAWING_FILE"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    EMPTY_PHOTO_LIST = "EMPTY_PHOTO_LIST"
    DUPLICATE_FILE_NAME = "DUPLICATE_FILE_NAME"
    INVALID_DATE_FORMAT = "INVALID_DATE_FORMAT"
    INVALID_XML_STRUCTURE = "INVALID_XML_STRUCTURE"

    # === Warnings (non-blocking) ===
    UNRECOGNIZED_CLASSIFICATION = "UNRECOGNIZED_CLASSIFICATION"
    NO_REPRESENTATIVE_PHOTO = "NO_REPRESENTATIVE_PHOTO"
    MISSING_SHOOTING_LOCATION = "MISSING_SHOOTING_LOCATION"
    MISSING_LOCATION_INFO = "MISSING_LOCATION_INFO"
    LARGE_FILE_SIZE = "LARGE_FILE_SIZE"
