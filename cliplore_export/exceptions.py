"""Custom exceptions for the export engine.

Every failure is terminal for the job that raised it. Exceptions carry a
machine-readable code whose retryability is defined in
``cliplore_export.constants.error_codes``.
"""

from typing import Any

from cliplore_export.constants.error_codes import get_error_spec, is_retryable


class ExportError(Exception):
    """Base exception for all export engine errors."""

    code: str = "INTERNAL_ERROR"
    message: str = "An unexpected export error occurred"

    def __init__(self, message: str | None = None, *, code: str | None = None):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return is_retryable(self.code)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        spec = get_error_spec(self.code)
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "suggested_fix": spec.get("suggested_fix"),
        }


# =============================================================================
# Resource staging errors
# =============================================================================


class MissingSourceAsset(ExportError):
    """Source bytes for a referenced clip could not be read."""

    code = "MISSING_SOURCE_ASSET"
    message = "Missing source asset"

    def __init__(self, clip_id: str, source_ref: str | None = None):
        self.clip_id = clip_id
        self.source_ref = source_ref
        detail = f" ({source_ref})" if source_ref else ""
        super().__init__(f"Missing source asset for clip {clip_id}{detail}")


class MissingFontAsset(ExportError):
    """A font family required by a text overlay could not be loaded."""

    code = "MISSING_FONT_ASSET"
    message = "Missing font asset"

    def __init__(self, family: str):
        self.family = family
        super().__init__(f"Missing font file for family: {family}")


# =============================================================================
# Input errors
# =============================================================================


class InvalidTimeline(ExportError):
    code = "INVALID_TIMELINE"
    message = "Timeline has nothing to render"


class InvalidExportConfig(ExportError):
    code = "INVALID_EXPORT_CONFIG"
    message = "Invalid export configuration"


# =============================================================================
# Execution errors
# =============================================================================


class BackendExecutionFailed(ExportError):
    """The native engine exited with an error."""

    code = "BACKEND_EXECUTION_FAILED"
    message = "Backend execution failed"

    def __init__(self, details: str, *, returncode: int | None = None):
        self.details = details
        self.returncode = returncode
        super().__init__(f"Backend execution failed: {details}")


class BackendUnavailable(ExportError):
    """A backend instance was reused after termination or while busy."""

    code = "BACKEND_UNAVAILABLE"
    message = "Backend instance is not available"


class ExportCancelled(ExportError):
    code = "EXPORT_CANCELLED"
    message = "Export was cancelled"
