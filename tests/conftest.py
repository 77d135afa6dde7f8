"""
Shared pytest configuration for Flux Archive.

Every test runs against a private settings directory so a developer's
own settings file never changes test results.
"""

import logging

import pytest

from flux_archive.core.settings import CONFIG_DIR_ENV, Settings
from flux_archive.utils.logging import CONSOLE_HANDLER_NAME


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the settings manager at an empty per-test directory."""
    config_dir = tmp_path / "config"
    monkeypatch.setenv(CONFIG_DIR_ENV, str(config_dir))
    Settings.reset_instance()
    yield config_dir
    Settings.reset_instance()


@pytest.fixture(autouse=True)
def console_log_cleanup():
    """Drop the console handler main() installs, it holds the captured stderr."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler.get_name() == CONSOLE_HANDLER_NAME:
            root.removeHandler(handler)
            handler.close()
