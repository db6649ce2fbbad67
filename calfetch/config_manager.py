"""Environment and .env overrides for calfetch configuration."""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .config_loader import Config
from .models import CalendarSource

logger = logging.getLogger(__name__)


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", path, exc_info=True)
        return {}

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, val = line.split("=", 1)
        key = key.strip()
        if key:
            result[key] = val.strip().strip('"').strip("'")

    return result


class ConfigManager:
    """Merges environment variables over file configuration."""

    INT_OVERRIDES = {
        "CALFETCH_RELOAD_INTERVAL": "reload_interval",
        "CALFETCH_MAX_ENTRIES": "maximum_entries",
        "CALFETCH_MAX_DAYS": "maximum_number_of_days",
    }

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load the .env file into os.environ without overriding existing keys.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        set_keys = []
        for key, val in parse_env_file(self.env_file_path).items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
        return set_keys

    def source_overrides(self) -> dict[str, Any]:
        """Collect per-calendar overrides from CALFETCH_* integer variables."""
        overrides: dict[str, Any] = {}
        for env_key, field_name in self.INT_OVERRIDES.items():
            raw = os.environ.get(env_key)
            if not raw:
                continue
            try:
                overrides[field_name] = int(raw)
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_key, raw)
        return overrides

    def apply_overrides(self, config: Config) -> Config:
        """Return a copy of config with environment overrides applied.

        Recognizes:
        - CALFETCH_ICS_URL -> replaces calendars with a single feed
        - CALFETCH_RELOAD_INTERVAL -> reload_interval (ms) of every calendar
        - CALFETCH_MAX_ENTRIES -> maximum_entries of every calendar
        - CALFETCH_MAX_DAYS -> maximum_number_of_days of every calendar
        - CALFETCH_TIMEZONE -> timezone
        - CALFETCH_LOG_LEVEL -> log_level
        """
        calendars = list(config.calendars)

        ics_url = os.environ.get("CALFETCH_ICS_URL")
        if ics_url:
            calendars = [CalendarSource(url=ics_url)]

        overrides = self.source_overrides()
        if overrides:
            updated = []
            for source in calendars:
                try:
                    updated.append(CalendarSource.model_validate({**source.model_dump(), **overrides}))
                except ValidationError as e:
                    logger.warning("Ignoring environment overrides for %s: %s", source.url, e)
                    updated.append(source)
            calendars = updated

        return replace(
            config,
            calendars=calendars,
            timezone=os.environ.get("CALFETCH_TIMEZONE") or config.timezone,
            log_level=(os.environ.get("CALFETCH_LOG_LEVEL") or config.log_level).upper(),
        )

    def load_full_config(self, config: Config) -> Config:
        """Load the .env file and apply environment overrides to config."""
        self.load_env_file()
        return self.apply_overrides(config)
