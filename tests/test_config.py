"""Tests for configuration loading and saving."""

import json
import pytest
import tempfile
from pathlib import Path
from unittest.mock import patch

from beam.config import (
    DEFAULT_API_URL,
    Config,
    NotificationSettings,
    PomodoroSettings,
    SyncSettings,
)


class TestPomodoroSettings:
    """Tests for PomodoroSettings validation."""

    def test_defaults(self):
        settings = PomodoroSettings()

        assert settings.work_duration == 25
        assert settings.short_break_duration == 5
        assert settings.long_break_duration == 15
        assert settings.sessions_until_long_break == 4

    def test_rejects_non_positive_duration(self):
        with pytest.raises(ValueError):
            PomodoroSettings(short_break_duration=0)

    def test_rejects_cadence_below_two(self):
        with pytest.raises(ValueError):
            PomodoroSettings(sessions_until_long_break=1)


class TestConfig:
    """Tests for Config."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_file = Path(self.temp_dir) / "config.json"
        self.patcher = patch.object(Config, "get_config_file", return_value=self.config_file)
        self.patcher.start()

    def teardown_method(self):
        """Clean up."""
        self.patcher.stop()

    def test_defaults_without_file(self, monkeypatch):
        monkeypatch.delenv("BEAM_API_URL", raising=False)

        config = Config.load()

        assert config.api_url == DEFAULT_API_URL
        assert config.sync == SyncSettings()
        assert config.pomodoro == PomodoroSettings()
        assert config.notifications == NotificationSettings()
        assert config.debug_mode is False

    def test_save_and_load(self, monkeypatch):
        monkeypatch.delenv("BEAM_API_URL", raising=False)
        config = Config(
            api_url="https://beam.example.com/functions/v1",
            pomodoro=PomodoroSettings(work_duration=50, sessions_until_long_break=3),
            notifications=NotificationSettings(sound=False),
            debug_mode=True,
        )
        config.sync.interval_seconds = 60

        config.save()
        loaded = Config.load()

        assert loaded.api_url == "https://beam.example.com/functions/v1"
        assert loaded.sync.interval_seconds == 60
        assert loaded.pomodoro.work_duration == 50
        assert loaded.pomodoro.sessions_until_long_break == 3
        assert loaded.notifications.sound is False
        assert loaded.debug_mode is True

    def test_env_overrides_api_url(self, monkeypatch):
        Config(api_url="https://stored.example.com").save()
        monkeypatch.setenv("BEAM_API_URL", "https://env.example.com")

        assert Config.load().api_url == "https://env.example.com"

    def test_invalid_file_falls_back_to_defaults(self, monkeypatch):
        monkeypatch.delenv("BEAM_API_URL", raising=False)
        self.config_file.write_text("{broken")

        assert Config.load().api_url == DEFAULT_API_URL

    def test_invalid_settings_fall_back_to_defaults(self, monkeypatch):
        monkeypatch.delenv("BEAM_API_URL", raising=False)
        self.config_file.write_text(json.dumps({"pomodoro": {"work_duration": -1}}))

        assert Config.load().pomodoro == PomodoroSettings()

    def test_unknown_keys_are_ignored(self, monkeypatch):
        monkeypatch.delenv("BEAM_API_URL", raising=False)
        self.config_file.write_text(json.dumps({"debug_mode": True, "legacy": 1}))

        assert Config.load().debug_mode is True

    def test_sync_interval_has_floor(self):
        config = Config(sync=SyncSettings(interval_seconds=1))
        assert config.sync_interval == 5
