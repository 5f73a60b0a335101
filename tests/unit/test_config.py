"""Configuration tests."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from core import get_settings
from core.config import Settings


def test_settings_defaults():
    """Test default settings load correctly."""
    settings = get_settings()

    assert settings.sandbox_timeout_ms == 5000
    assert settings.sandbox_command == []
    assert settings.enable_render_cache is True
    assert settings.grid_size == 20
    assert settings.storage_dir == Path(".artifact-data")


def test_settings_from_environment(monkeypatch):
    """Prefixed environment variables override defaults."""
    monkeypatch.setenv("ARTIFACT_SNAP_TO_GRID", "true")
    monkeypatch.setenv("ARTIFACT_AUTOSAVE_DELAY", "0.5")

    settings = Settings()

    assert settings.log_level == "DEBUG"
    assert settings.snap_to_grid is True
    assert settings.autosave_delay == 0.5


def test_settings_validation():
    """Test settings validation."""
    assert Settings(sandbox_timeout_ms=250).sandbox_timeout_ms == 250

    with pytest.raises(ValidationError):
        Settings(sandbox_timeout_ms=0)

    with pytest.raises(ValidationError):
        Settings(grid_size=-5)

    with pytest.raises(ValidationError):
        Settings(autosave_delay=-1)
