"""
Unit tests for the settings manager.

Tests defaults, persistence, validation of loaded values and recovery
from corrupt settings files.
"""

import json
import logging

import pytest
from pydantic import ValidationError

from flux_archive.core.settings import (
    CONFIG_DIR_ENV,
    LogSettings,
    Settings,
    StorageSettings,
    get_settings,
    get_settings_dir,
    get_settings_file,
)


def write_settings(data) -> None:
    path = get_settings_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data) if not isinstance(data, str) else data)


class TestDefaults:
    """Test default values."""

    def test_defaults(self):
        """Test every category starts at its defaults."""
        settings = get_settings()

        assert settings.storage.fsync_on_close is True
        assert settings.storage.max_stream_bytes == 0
        assert settings.log.log_file == "flux_archive.log"
        assert settings.log.level == "INFO"
        assert settings.scp.sample_freq_hz == 40_000_000
        assert not settings.is_dirty

    def test_singleton(self):
        """Test a single shared instance."""
        assert Settings() is Settings.instance()
        assert get_settings() is Settings.instance()

    def test_settings_dir_override(self, isolated_settings, monkeypatch):
        """Test the environment variable selects the directory."""
        assert get_settings_dir() == isolated_settings
        assert get_settings().settings_file == isolated_settings / "settings.json"

        monkeypatch.delenv(CONFIG_DIR_ENV)
        monkeypatch.setattr("sys.platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", "/xdg")
        assert str(get_settings_dir()) == "/xdg/flux-archive"


class TestValidation:
    """Test category validation."""

    def test_level_normalized(self):
        """Test log levels are upper-cased."""
        log = LogSettings(level="debug")

        assert log.level == "DEBUG"
        assert log.level_number == logging.DEBUG

    def test_unknown_level_rejected(self):
        """Test unknown log levels."""
        with pytest.raises(ValidationError):
            LogSettings(level="LOUD")

    def test_negative_stream_limit_rejected(self):
        """Test stream limits cannot be negative."""
        with pytest.raises(ValidationError):
            StorageSettings(max_stream_bytes=-1)

    def test_assignment_validated(self):
        """Test invalid assignments on a live category."""
        with pytest.raises(ValidationError):
            get_settings().scp.sample_freq_hz = 0


class TestPersistence:
    """Test saving and loading."""

    def test_save_and_reload(self):
        """Test saved values are loaded by a new instance."""
        settings = get_settings()
        settings.storage.max_stream_bytes = 1 << 20
        settings.log.level = "warning"
        assert settings.save()

        Settings.reset_instance()
        reloaded = get_settings()

        assert reloaded.storage.max_stream_bytes == 1 << 20
        assert reloaded.log.level == "WARNING"

    def test_saved_file_layout(self):
        """Test the JSON document written."""
        get_settings().save()

        data = json.loads(get_settings_file().read_text())

        assert data['version'] == Settings.SETTINGS_VERSION
        assert set(data) >= {'storage', 'log', 'scp', 'saved_at'}

    def test_modify_context_saves(self):
        """Test modify() writes on exit."""
        settings = get_settings()

        with settings.modify() as s:
            s.scp.sample_freq_hz = 72_000_000
            assert s.is_dirty

        assert not settings.is_dirty
        assert json.loads(get_settings_file().read_text())['scp']['sample_freq_hz'] == 72_000_000

    def test_modify_context_skips_save_on_error(self):
        """Test modify() does not save when the block raises."""
        settings = get_settings()

        with pytest.raises(RuntimeError):
            with settings.modify():
                settings.log.level = "ERROR"
                raise RuntimeError("abort")

        assert not get_settings_file().exists()

    def test_invalid_json_backed_up(self):
        """Test corrupt files are moved aside and defaults used."""
        write_settings("{not json")

        settings = get_settings()

        assert settings.log.level == "INFO"
        assert get_settings_file().with_suffix('.backup').exists()
        assert not get_settings_file().exists()

    def test_invalid_category_uses_defaults(self):
        """Test one bad category does not discard the others."""
        write_settings({
            'version': 1,
            'log': {'level': 'LOUD'},
            'storage': {'max_stream_bytes': 4096},
        })

        settings = get_settings()

        assert settings.log.level == "INFO"
        assert settings.storage.max_stream_bytes == 4096

    def test_unknown_keys_ignored(self):
        """Test keys from other versions are skipped."""
        write_settings({'version': 1, 'scp': {'sample_freq_hz': 80_000_000, 'legacy': True},
                        'gui': {'theme': 'dark'}})

        assert get_settings().scp.sample_freq_hz == 80_000_000

    def test_unversioned_file(self):
        """Test a file without a version loads its categories as they are."""
        write_settings({'log': {'level': 'DEBUG', 'log_file': 'old.log'},
                        'logging': {'level': 'ERROR'}})

        settings = get_settings()

        assert settings.log.level == "DEBUG"
        assert settings.log.log_file == "old.log"

    def test_reset_to_defaults(self):
        """Test resetting one category."""
        settings = get_settings()
        settings.storage.max_stream_bytes = 10
        settings.log.level = "ERROR"

        settings.reset_to_defaults('storage')

        assert settings.storage.max_stream_bytes == 0
        assert settings.log.level == "ERROR"
        assert settings.is_dirty

    def test_reset_unknown_category(self):
        """Test unknown category names."""
        with pytest.raises(KeyError):
            get_settings().reset_to_defaults('gui')
