"""Application settings loaded from YAML, with an optional named profile."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Settings sections
# ---------------------------------------------------------------------------


class ParserSettings(BaseModel):
    timezone: str = "Europe/Berlin"
    price_tolerance: float = 0.01
    reject_future_dates: bool = True


class IngestionSettings(BaseModel):
    supported_formats: list[str] = Field(
        default_factory=lambda: [".pdf", ".csv"]
    )
    max_file_size_mb: int = 25


class LoggingSettings(BaseModel):
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseModel):
    parser: ParserSettings = Field(default_factory=ParserSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# Selects settings-<profile>.yaml over settings.yaml.
PROFILE_ENV = "BROKERIMPORT_PROFILE"
DEFAULT_SETTINGS_NAME = "settings.yaml"


def settings_file_names(profile: str | None = None) -> tuple[str, ...]:
    """File names to try in each directory, most specific first."""
    if profile is None:
        profile = os.getenv(PROFILE_ENV, "")
    if not profile:
        return (DEFAULT_SETTINGS_NAME,)
    return (f"settings-{profile}.yaml", DEFAULT_SETTINGS_NAME)


def find_settings_file(start: Path | None = None) -> Path | None:
    """Nearest settings file in ``start`` (default: cwd) or one of its parents.

    A profile file wins over ``settings.yaml`` only within the same
    directory; a closer directory always wins over a farther one.
    """
    names = settings_file_names()
    start = (start or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        found = next((directory / n for n in names if (directory / n).is_file()), None)
        if found is not None:
            return found
    return None


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from ``path`` or the nearest settings file.

    Defaults apply when no file is found. An explicit ``path`` must exist.
    """
    if path is None:
        path = find_settings_file()
        if path is None:
            return Settings()
    elif not path.is_file():
        raise FileNotFoundError(f"Settings file not found: {path}")

    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return Settings.model_validate(raw)
