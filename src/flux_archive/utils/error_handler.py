"""
Error handling utilities for Flux Archive.

Turns flux image errors into user-facing messages and classifies error
kinds for logging and exit handling.
"""

from flux_archive.imaging.image_formats import (
    ErrorKind,
    FluxImageError,
    ImageCorruptError,
    ImageFormatError,
)


def describe_error(error: BaseException) -> str:
    """
    Build a context-aware message for an error.

    Provides an actionable hint for each error kind.

    Args:
        error: The exception raised by an image operation

    Returns:
        Formatted error message with guidance

    Example:
        >>> print(describe_error(ReadOnlyImageError("SCP image is open read-only")))
        Not supported: SCP image is open read-only
        Hint: this format can only be read; import it into a FLUXARC archive to modify it.
    """
    if not isinstance(error, FluxImageError):
        return f"Unexpected error: {error}"

    hints = {
        ErrorKind.OUT_OF_RANGE: (
            "Out of range",
            "check the capture count for this head/track/sub-track with 'info'.",
        ),
        ErrorKind.INVALID_ARGUMENT: (
            "Invalid argument",
            "resolution must be non-zero and capture indices must not skip slots.",
        ),
        ErrorKind.NOT_SUPPORTED: (
            "Not supported",
            "this format can only be read; import it into a FLUXARC archive to modify it.",
        ),
        ErrorKind.IO_FAILURE: (
            "I/O failure",
            "check the file exists, is readable and has free space to write.",
        ),
    }

    title, hint = hints[error.kind]
    if isinstance(error, ImageCorruptError):
        hint = "the image is damaged or truncated; re-capture or restore it from a backup."
    elif isinstance(error, ImageFormatError):
        hint = "the file is not a supported flux image (.fluxarc, .flx or .scp)."

    return f"{title}: {error}\nHint: {hint}"


def is_caller_error(kind: ErrorKind) -> bool:
    """
    Determine if an error kind means the caller misused the API.

    Out-of-range reads, invalid arguments and writes to read-only images
    are caller errors; I/O failures come from the media or storage.

    Args:
        kind: Error kind of the exception

    Returns:
        True if the caller can fix the error by changing its request
    """
    return kind in (ErrorKind.OUT_OF_RANGE, ErrorKind.INVALID_ARGUMENT,
                    ErrorKind.NOT_SUPPORTED)


def get_error_severity(kind: ErrorKind) -> str:
    """
    Get the severity level of an error kind.

    Classifies errors into severity levels for logging and display.

    Args:
        kind: Error kind of the exception

    Returns:
        Severity level: "critical", "error" or "warning"

    Example:
        >>> get_error_severity(ErrorKind.IO_FAILURE)
        'critical'
    """
    if kind == ErrorKind.IO_FAILURE:
        return "critical"

    if kind == ErrorKind.OUT_OF_RANGE:
        return "warning"

    return "error"
