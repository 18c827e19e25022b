"""Settings file loading, validation, and persistence.

Schema on disk (~/.config/dotdiff/config.json), every key optional:

    {
        "debounce_ms": 150,
        "watch": true,
        "confirm_quit": true,
        "theme": "textual-dark"
    }

Keys prefixed with "_" are reserved (e.g. "_comment") and are stripped on load.
"""

import json
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from dotdiff.constants import FILE_WATCHER_DEBOUNCE_MS

CONFIG_PATH = Path("~/.config/dotdiff/config.json").expanduser()


class Settings(BaseModel):
    """User preferences for the diff viewer."""

    debounce_ms: int = Field(default=FILE_WATCHER_DEBOUNCE_MS, ge=0)
    watch: bool = True
    confirm_quit: bool = True
    theme: str | None = None


class ConfigError(Exception):
    """Raised when config.json exists but cannot be parsed or validated."""


def load_settings() -> Settings:
    """Load and validate the settings file.

    Creates the config directory and an empty config.json on first run.
    Returns defaults if the file is empty.  Raises ConfigError if the file
    exists but is malformed.
    """
    if not CONFIG_PATH.exists():
        _bootstrap()
        return Settings()

    text = CONFIG_PATH.read_text()
    if not text.strip():
        return Settings()

    try:
        raw: object = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"config.json is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError("config.json must be a JSON object at the top level")

    data = {k: v for k, v in raw.items() if not k.startswith("_")}
    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc


def save_settings(settings: Settings) -> None:
    """Persist settings to disk, creating directories as needed."""
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text(json.dumps(settings.model_dump(exclude_none=True), indent=2))


def save_theme(theme: str) -> None:
    """Remember the theme without disturbing the other settings."""
    try:
        settings = load_settings()
    except ConfigError:
        # A malformed file is left for the user to fix.
        return
    save_settings(settings.model_copy(update={"theme": theme}))


def _bootstrap() -> None:
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text("{}\n")
