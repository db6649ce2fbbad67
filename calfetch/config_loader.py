"""calfetch.config_loader

Configuration loader for calfetch.

- Reads YAML with PyYAML (JSON documents are valid YAML and load as well).
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .exceptions import ConfigurationError
from .models import CalendarSource

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "calfetch.yaml"


@dataclass
class Config:
    """Typed configuration for calfetch.

    Fields:
        calendars: one CalendarSource per feed
        log_level: logging level name
        timezone: IANA timezone for date-only and floating times (None = host zone)
    """

    calendars: list[CalendarSource] = field(default_factory=list)
    log_level: str = "INFO"
    timezone: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        A bare URL string is accepted as a calendar entry. Entries that fail
        validation are logged and skipped so one bad feed does not stop the
        others.
        """
        if data is None:
            data = {}

        raw_calendars = data.get("calendars")
        if raw_calendars is None:
            raw_calendars = []
        if not isinstance(raw_calendars, (list, tuple)):
            logger.warning("Config `calendars` is not a list; coercing to single-item list")
            raw_calendars = [raw_calendars]

        calendars: list[CalendarSource] = []
        for index, entry in enumerate(raw_calendars):
            if isinstance(entry, str):
                entry = {"url": entry}
            if not isinstance(entry, dict):
                logger.warning("Calendar #%d is not a mapping (%r); skipping", index, entry)
                continue
            try:
                calendars.append(CalendarSource.model_validate(entry))
            except ValidationError as e:
                logger.warning("Calendar #%d is invalid; skipping: %s", index, e)

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        timezone = data.get("timezone")
        timezone = str(timezone) if timezone else None

        return cls(calendars=calendars, log_level=log_level, timezone=timezone)


def _load_yaml(path: Path) -> Any:
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Unable to parse config file {path}: {e}") from e
    # safe_load returns None for empty files
    return {} if loaded is None else loaded


def load_config(path: str | None = None) -> Config:
    """Load configuration from a YAML file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to ./calfetch.yaml.

    Returns:
        Config dataclass instance with values from file (or defaults).

    Raises:
        ConfigurationError: If the file is not valid YAML or its top level is
            not a mapping
    """
    p = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_FILENAME
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        return Config()

    raw = _load_yaml(p)
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ConfigurationError("Config file must contain a mapping at top level")
    cfg = Config.from_dict(raw)
    logger.info("Loaded configuration from %s (%d calendars)", p, len(cfg.calendars))
    return cfg
