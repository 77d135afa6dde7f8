"""
Settings management module for Flux Archive.

This module provides settings management with JSON-based persistence,
a singleton manager, and pydantic validation of every category.

Features:
    - Singleton pattern for global settings access
    - JSON-based configuration file persistence
    - Platform-specific settings paths (overridable via FLUX_ARCHIVE_CONFIG_DIR)
    - Validation of loaded values, falling back to defaults per category
    - Migration support between versions
    - Edge case handling (file locked, disk full, invalid JSON)

Settings Categories:
    - Storage: flush behaviour and stream size limits
    - Log: log file location and level
    - SCP: SuperCard Pro capture clock
"""

import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


# Module logger
logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = 'FLUX_ARCHIVE_CONFIG_DIR'


# =============================================================================
# Settings File Paths
# =============================================================================

def get_settings_dir() -> Path:
    """
    Get the platform-specific settings directory.

    Returns:
        Path to settings directory

    Platform paths:
        - Override: $FLUX_ARCHIVE_CONFIG_DIR
        - Linux: ~/.config/flux-archive/
        - Windows: %APPDATA%/FluxArchive/
        - macOS: ~/Library/Application Support/FluxArchive/
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override)

    if sys.platform == 'win32':
        base = Path(os.environ.get('APPDATA', Path.home() / 'AppData' / 'Roaming'))
        return base / 'FluxArchive'
    elif sys.platform == 'darwin':
        return Path.home() / 'Library' / 'Application Support' / 'FluxArchive'
    else:
        xdg_config = os.environ.get('XDG_CONFIG_HOME', Path.home() / '.config')
        return Path(xdg_config) / 'flux-archive'


def get_settings_file() -> Path:
    """Get the settings file path."""
    return get_settings_dir() / 'settings.json'


# =============================================================================
# Settings Categories
# =============================================================================

class StorageSettings(BaseModel):
    """Capture storage behaviour."""
    model_config = ConfigDict(validate_assignment=True)

    fsync_on_close: bool = True
    max_stream_bytes: int = Field(default=0, ge=0)  # 0 = unlimited


class LogSettings(BaseModel):
    """Logging destination and verbosity."""
    model_config = ConfigDict(validate_assignment=True)

    log_file: str = "flux_archive.log"
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value}")
        return level

    @property
    def level_number(self) -> int:
        return logging.getLevelName(self.level)


class ScpSettings(BaseModel):
    """SuperCard Pro import parameters."""
    model_config = ConfigDict(validate_assignment=True)

    sample_freq_hz: int = Field(default=40_000_000, gt=0)  # 25ns base tick


CATEGORIES: Dict[str, type] = {
    'storage': StorageSettings,
    'log': LogSettings,
    'scp': ScpSettings,
}


# =============================================================================
# Settings Manager
# =============================================================================

class Settings:
    """
    Singleton settings manager for Flux Archive.

    Usage:
        settings = Settings.instance()
        settings.storage.max_stream_bytes = 1 << 20
        settings.save()

        # Or with context manager for auto-save:
        with settings.modify():
            settings.log.level = "DEBUG"
    """

    _instance: Optional["Settings"] = None
    _initialized: bool = False

    # Settings version for migration
    SETTINGS_VERSION = 1

    def __new__(cls) -> "Settings":
        """Ensure singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize settings (only runs once due to singleton)."""
        if self._initialized:
            return

        self._initialized = True

        self.storage = StorageSettings()
        self.log = LogSettings()
        self.scp = ScpSettings()

        self._dirty = False

        self.load()

        logger.debug("Settings initialized")

    @classmethod
    def instance(cls) -> "Settings":
        """Get the singleton settings instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance (for testing)."""
        cls._instance = None
        cls._initialized = False

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> bool:
        """
        Load settings from file.

        Returns:
            True if settings were loaded successfully
        """
        settings_file = get_settings_file()

        if not settings_file.exists():
            logger.debug("Settings file not found: %s", settings_file)
            return False

        try:
            with open(settings_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in settings file: %s", e)
            self._backup_corrupted_file(settings_file)
            return False
        except OSError as e:
            logger.error("Error reading settings: %s", e)
            return False

        if not isinstance(data, dict):
            logger.error("Settings file does not hold an object: %s", settings_file)
            self._backup_corrupted_file(settings_file)
            return False

        version = data.get('version', 0)
        if version < self.SETTINGS_VERSION:
            data = self._migrate_settings(data, version)

        for name, model in CATEGORIES.items():
            if name in data:
                self._load_category(name, model, data[name])

        logger.info("Settings loaded from %s", settings_file)
        return True

    def save(self) -> bool:
        """
        Save settings to file.

        Returns:
            True if settings were saved successfully
        """
        settings_dir = get_settings_dir()
        settings_file = get_settings_file()

        data: Dict[str, Any] = {
            'version': self.SETTINGS_VERSION,
            'saved_at': datetime.now().isoformat(),
        }
        for name in CATEGORIES:
            data[name] = getattr(self, name).model_dump()

        try:
            settings_dir.mkdir(parents=True, exist_ok=True)

            # Write to temp file first, then rename (atomic)
            temp_file = settings_file.with_suffix('.tmp')
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            temp_file.replace(settings_file)

        except PermissionError as e:
            logger.error("Permission denied saving settings: %s", e)
            return False
        except OSError as e:
            if e.errno == 28:
                logger.error("Disk full - cannot save settings")
            else:
                logger.error("OS error saving settings: %s", e)
            return False

        self._dirty = False
        logger.info("Settings saved to %s", settings_file)
        return True

    def _load_category(self, name: str, model: type, values: Any) -> None:
        """Validate one category, keeping the current values on failure."""
        if not isinstance(values, dict):
            logger.warning("Ignoring settings category %s: not an object", name)
            return

        current = getattr(self, name).model_dump()
        known = {key: value for key, value in values.items() if key in current}
        try:
            setattr(self, name, model.model_validate({**current, **known}))
        except ValidationError as e:
            logger.warning("Invalid %s settings, using defaults: %s", name, e)

    def _migrate_settings(self, data: Dict[str, Any], from_version: int) -> Dict[str, Any]:
        """
        Migrate settings from older versions.

        Args:
            data: Settings data dictionary
            from_version: Version of the loaded settings

        Returns:
            Migrated settings data
        """
        logger.info("Migrating settings from version %d to %d",
                    from_version, self.SETTINGS_VERSION)

        data['version'] = self.SETTINGS_VERSION
        return data

    def _backup_corrupted_file(self, file_path: Path) -> None:
        """Backup a corrupted settings file."""
        backup_path = file_path.with_suffix('.backup')
        try:
            file_path.replace(backup_path)
            logger.info("Corrupted settings backed up to %s", backup_path)
        except OSError as e:
            logger.error("Could not backup corrupted file: %s", e)

    # =========================================================================
    # Context Manager
    # =========================================================================

    class _ModifyContext:
        """Context manager for batch modifications with auto-save."""

        def __init__(self, settings: "Settings"):
            self._settings = settings

        def __enter__(self) -> "Settings":
            return self._settings

        def __exit__(self, exc_type, exc_val, exc_tb) -> None:
            if exc_type is None:
                self._settings.save()

    def modify(self) -> "_ModifyContext":
        """
        Get a context manager for batch modifications.

        Settings are saved when the context exits without error.
        """
        self._dirty = True
        return self._ModifyContext(self)

    def reset_to_defaults(self, category: Optional[str] = None) -> None:
        """
        Reset settings to defaults.

        Args:
            category: Specific category to reset, or None for all
        """
        names = [category] if category else list(CATEGORIES)
        for name in names:
            if name not in CATEGORIES:
                raise KeyError(f"Unknown settings category: {name}")
            setattr(self, name, CATEGORIES[name]())
        self._dirty = True
        logger.info("Settings reset to defaults: %s", ", ".join(names))

    @property
    def is_dirty(self) -> bool:
        """Check if settings have unsaved changes."""
        return self._dirty

    @property
    def settings_file(self) -> Path:
        """Get the settings file path."""
        return get_settings_file()


# =============================================================================
# Module-Level Convenience Functions
# =============================================================================

def get_settings() -> Settings:
    """
    Get the global settings instance.

    This is a convenience function equivalent to Settings.instance().
    """
    return Settings.instance()


__all__ = [
    'StorageSettings',
    'LogSettings',
    'ScpSettings',
    'Settings',
    'get_settings',
    'get_settings_dir',
    'get_settings_file',
    'CONFIG_DIR_ENV',
]
