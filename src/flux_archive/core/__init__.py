"""
Core configuration for Flux Archive.

This module exposes the settings manager shared by the imaging backends,
the logging setup and the command-line interface.
"""

from flux_archive.core.settings import (
    StorageSettings,
    LogSettings,
    ScpSettings,
    Settings,
    get_settings,
    get_settings_dir,
    get_settings_file,
)

__all__ = [
    # Settings categories
    "StorageSettings",
    "LogSettings",
    "ScpSettings",

    # Settings manager
    "Settings",
    "get_settings",
    "get_settings_dir",
    "get_settings_file",
]
