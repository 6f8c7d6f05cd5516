"""Configuration management for Beam Sync."""

import json
import logging
import os
from dataclasses import dataclass, field, asdict
from pathlib import Path

from platformdirs import user_config_dir, user_data_dir, user_log_dir

__all__ = [
    "Config",
    "SyncSettings",
    "PomodoroSettings",
    "NotificationSettings",
    "setup_logging",
    "DEFAULT_API_URL",
    "STORAGE_NAMESPACE",
]

logger = logging.getLogger(__name__)

APP_NAME = "Beam"
APP_AUTHOR = "Beam"

# API endpoints
DEFAULT_API_URL = "http://127.0.0.1:54321/functions/v1"
API_URL_ENV = "BEAM_API_URL"

# Sync settings
DEFAULT_SYNC_INTERVAL = 30  # seconds
MIN_SYNC_INTERVAL = 5
DEFAULT_REQUEST_TIMEOUT = 30  # seconds

# Key under which the local store persists its state
STORAGE_NAMESPACE = "beam-storage"


@dataclass
class SyncSettings:
    """Sync configuration."""

    interval_seconds: int = DEFAULT_SYNC_INTERVAL
    timeout: int = DEFAULT_REQUEST_TIMEOUT
    max_workers: int = 4  # Thread pool size for pushes and parallel pulls


@dataclass
class PomodoroSettings:
    """Pomodoro durations (minutes) and long break cadence."""

    work_duration: int = 25
    short_break_duration: int = 5
    long_break_duration: int = 15
    sessions_until_long_break: int = 4

    def __post_init__(self) -> None:
        for name in ("work_duration", "short_break_duration", "long_break_duration"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.sessions_until_long_break < 2:
            raise ValueError("sessions_until_long_break must be at least 2")


@dataclass
class NotificationSettings:
    """Desktop notification preferences."""

    enabled: bool = True
    sound: bool = True


@dataclass
class Config:
    """Main configuration object."""

    api_url: str = DEFAULT_API_URL
    sync: SyncSettings = field(default_factory=SyncSettings)
    pomodoro: PomodoroSettings = field(default_factory=PomodoroSettings)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    debug_mode: bool = False

    @classmethod
    def get_config_dir(cls) -> Path:
        """Get the configuration directory path."""
        return Path(user_config_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_data_dir(cls) -> Path:
        """Get the data directory path (for the SQLite state store)."""
        return Path(user_data_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_log_dir(cls) -> Path:
        """Get the log directory path."""
        return Path(user_log_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_config_file(cls) -> Path:
        """Get the config file path."""
        return cls.get_config_dir() / "config.json"

    @classmethod
    def load(cls) -> "Config":
        """Load config from file, or return defaults.

        ``BEAM_API_URL`` in the environment wins over the stored api_url.
        """
        config = cls()
        config_file = cls.get_config_file()
        if config_file.exists():
            try:
                with open(config_file, "r") as f:
                    data = json.load(f)
                config = cls._from_dict(data)
            except Exception as e:
                logger.warning(f"Failed to load config: {e}, using defaults")

        env_url = os.getenv(API_URL_ENV)
        if env_url:
            config.api_url = env_url
        return config

    @classmethod
    def _from_dict(cls, data: dict) -> "Config":
        """Create Config from dictionary."""
        sync_data = data.pop("sync", {})
        pomodoro_data = data.pop("pomodoro", {})
        notification_data = data.pop("notifications", {})

        return cls(
            sync=SyncSettings(**sync_data) if sync_data else SyncSettings(),
            pomodoro=PomodoroSettings(**pomodoro_data) if pomodoro_data else PomodoroSettings(),
            notifications=(
                NotificationSettings(**notification_data)
                if notification_data
                else NotificationSettings()
            ),
            **{k: v for k, v in data.items() if k in cls.__dataclass_fields__},
        )

    def save(self) -> None:
        """Save config to file."""
        config_file = self.get_config_file()
        config_file.parent.mkdir(parents=True, exist_ok=True)

        data = asdict(self)
        with open(config_file, "w") as f:
            json.dump(data, f, indent=2)
        logger.info(f"Config saved to {config_file}")

    @property
    def sync_interval(self) -> int:
        """Pull interval clamped to a sane minimum."""
        return max(MIN_SYNC_INTERVAL, self.sync.interval_seconds)


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    log_dir = Config.get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "beam-sync.log"

    level = logging.DEBUG if debug else logging.INFO
    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
