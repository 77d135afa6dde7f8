"""
Utility functions for Flux Archive.

This module provides logging configuration and error message helpers
for the flux archive application.
"""

from flux_archive.utils.error_handler import (
    describe_error,
    is_caller_error,
    get_error_severity,
)

from flux_archive.utils.logging import (
    setup_logging,
    log_system_info,
    log_operation,
    log_error,
    log_performance,
)

__all__ = [
    # Error handling
    "describe_error",
    "is_caller_error",
    "get_error_severity",

    # Logging
    "setup_logging",
    "log_system_info",
    "log_operation",
    "log_error",
    "log_performance",
]
