"""
Logging configuration for Flux Archive.

Provides structured logging with system information capture for debugging
and troubleshooting.
"""

import logging
import platform
import sys
from pathlib import Path
from typing import Optional, Union

from flux_archive.core.settings import get_settings

CONSOLE_HANDLER_NAME = 'flux_archive.console'

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def setup_logging(log_file: Optional[str] = None,
                  level: Optional[Union[int, str]] = None) -> None:
    """
    Configure structured logging for the application.

    Sets up file-based logging plus an INFO console handler on stderr, and
    captures system information on startup for troubleshooting purposes.

    Args:
        log_file: Path to log file (default: settings.log.log_file)
        level: Logging level (default: settings.log.level)

    Example:
        >>> setup_logging()
        >>> logging.info("Application started")
    """
    settings = get_settings()
    if log_file is None:
        log_file = settings.log.log_file
    if level is None:
        level = settings.log.level_number
    elif isinstance(level, str):
        if level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        level = logging.getLevelName(level.upper())

    # Create logs directory if it doesn't exist
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        filename=str(log_path),
        level=level,
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Also log to the console, away from command output on stdout
    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler.get_name() == CONSOLE_HANDLER_NAME:
            root.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.set_name(CONSOLE_HANDLER_NAME)
    console_handler.setLevel(max(logging.INFO, level))
    console_handler.setFormatter(logging.Formatter('%(levelname)s - %(message)s'))
    root.addHandler(console_handler)

    log_system_info()


def log_system_info() -> None:
    """
    Log system information for debugging purposes.

    Captures platform, Python and numpy versions to aid in troubleshooting
    platform-specific issues.
    """
    import numpy

    from flux_archive import __version__

    logging.debug("=" * 60)
    logging.debug("Flux Archive %s - System Information", __version__)
    logging.debug("=" * 60)
    logging.debug("Platform: %s %s", platform.system(), platform.release())
    logging.debug("Machine: %s", platform.machine())
    logging.debug("Python version: %s", sys.version)
    logging.debug("numpy version: %s", numpy.__version__)
    logging.debug("Settings file: %s", get_settings().settings_file)
    logging.debug("=" * 60)


def log_operation(operation: str, details: str, level: int = logging.INFO) -> None:
    """
    Log an image operation with details.

    Args:
        operation: Name of the operation (e.g., "import_scp", "dump")
        details: Additional details about the operation
        level: Logging level (default: logging.INFO)

    Example:
        >>> log_operation("import_scp", "disk.scp -> disk.fluxarc")
        >>> log_operation("dump", "H0:T0.0 capture 1", logging.DEBUG)
    """
    logging.log(level, "%s: %s", operation, details)


def log_error(operation: str, error: BaseException) -> None:
    """
    Log an error with operation context.

    Args:
        operation: Name of the operation that failed
        error: The exception raised; flux errors also log their kind

    Example:
        >>> log_error("read_capture", CaptureOutOfRangeError("No capture 5"))
    """
    kind = getattr(error, 'kind', None)
    if kind is not None:
        logging.error("%s failed - %s: %s", operation, kind.value, error)
    else:
        logging.error("%s failed - %s: %s", operation, type(error).__name__, error)


def log_performance(operation: str, duration: float, **metrics) -> None:
    """
    Log performance metrics for an operation.

    Args:
        operation: Name of the operation
        duration: Duration in seconds
        **metrics: Additional performance metrics (e.g., captures=168)

    Example:
        >>> log_performance("import_scp", 1.25, captures=840, addresses=168)
    """
    metrics_str = ", ".join(f"{k}={v}" for k, v in metrics.items())
    logging.info("Performance - %s: %.2fs, %s", operation, duration, metrics_str)
