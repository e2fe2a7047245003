"""Error codes dictionary for export failures.

Single source of truth for every error code the engine raises and whether a
caller may retry the same job after fixing its inputs.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Resource staging errors
    # ==========================================================================
    "MISSING_SOURCE_ASSET": {
        "retryable": False,
        "suggested_fix": "Re-import the media file referenced by the clip",
    },
    "MISSING_FONT_ASSET": {
        "retryable": True,
        "suggested_fix": "Install the font file in the font store and retry",
    },
    # ==========================================================================
    # Input errors
    # ==========================================================================
    "INVALID_TIMELINE": {
        "retryable": False,
        "suggested_fix": "Add at least one clip or text overlay",
    },
    "INVALID_EXPORT_CONFIG": {
        "retryable": False,
    },
    # ==========================================================================
    # Execution errors
    # ==========================================================================
    "BACKEND_EXECUTION_FAILED": {
        "retryable": False,
    },
    "BACKEND_UNAVAILABLE": {
        "retryable": True,
        "suggested_fix": "Acquire a fresh backend instance for the job",
    },
    "EXPORT_CANCELLED": {
        "retryable": True,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code.

    Args:
        code: The error code

    Returns:
        ErrorCodeSpec with retryable flag and optional fix hint
    """
    return ERROR_CODES.get(code, {"retryable": False})


def is_retryable(code: str) -> bool:
    """Check if an error code is retryable."""
    return get_error_spec(code).get("retryable", False)
