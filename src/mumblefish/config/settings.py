"""
User settings.

A flat JSON document in the per-user data folder. It is read once at
startup and the resulting ``Settings`` object is handed to whichever
component needs it; nothing here is global.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)

APP_NAME = "MumbleFish"
CONFIG_FILENAME = "config.json"
NOTES_FILENAME = "notes.json"
CREDENTIALS_FILENAME = "credentials.json"
LOG_DIRNAME = "logs"


def get_app_data_dir(create: bool = True) -> Path:
    """Per-user folder holding settings, notes, credentials and logs."""
    if os.name == "nt":
        root = Path(os.environ.get("APPDATA") or Path.home())
    else:
        root = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")

    data_dir = root / APP_NAME
    if create:
        data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_config_path() -> Path:
    return get_app_data_dir() / CONFIG_FILENAME


@dataclass
class Settings:
    """Everything the user can configure."""

    # Polishing service
    service_url: str = "https://mumble.fish"
    request_timeout: float = 60.0

    # Last tone picked, restored on the next run
    selected_tone: str = "Concise"

    # Speech recognition
    transcription_provider: str = "openai"  # "openai" or "groq"
    transcription_api_key: str = ""
    language: Optional[str] = "en"
    partial_interval: float = 2.0  # seconds between live updates
    max_recording_seconds: float = 300.0

    # Behaviour
    copy_on_save: bool = True
    log_level: str = "INFO"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """Build settings, ignoring keys this version does not know."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Read settings from ``path`` (default: the config file in the data folder).

    A missing or unreadable file yields defaults.
    """
    config_path = path or get_config_path()
    if not config_path.exists():
        return Settings()

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("settings document is not an object")
        return Settings.from_dict(data)
    except (OSError, ValueError, TypeError) as e:
        logger.warning("Failed to load settings from %s: %s", config_path, e)
        return Settings()


def save_settings(settings: Settings, path: Optional[Path] = None) -> bool:
    """Write settings; returns False (and logs) if the file could not be written."""
    config_path = path or get_config_path()
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(json.dumps(settings.to_dict(), indent=2), encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to save settings to %s: %s", config_path, e)
        return False
    return True


def update_settings(settings: Settings, path: Optional[Path] = None, **changes) -> Settings:
    """Apply ``changes`` to known fields in place, then persist."""
    for name, value in changes.items():
        if hasattr(settings, name):
            setattr(settings, name, value)
        else:
            logger.debug("Ignoring unknown setting %s", name)

    save_settings(settings, path)
    return settings
