"""calendarfetcher.config_loader

Config file loader for calendarfetcher.

- Reads YAML (PyYAML) or, for ``.json`` files, JSON.
- Top-level keys naming FetcherConfig fields act as defaults for every calendar.
- Exposes a dataclass `AppConfig` and a `load_config()` helper.

Example::

    log_level: INFO
    reload_interval: 600
    calendars:
      - https://example.com/team.ics
      - url: https://example.com/private.ics
        auth: {method: basic, user: me, pass: secret}
        excluded_events: ["Standup", {filterBy: "/^Private:/i", regex: true}]
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import FetcherConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("calendarfetcher.yaml")

_CALENDAR_KEYS = ("calendars", "sources")


@dataclass
class AppConfig:
    """Typed application configuration.

    Fields:
        sources: one FetcherConfig per calendar
        log_level: logging level name
    """

    sources: list[FetcherConfig] = field(default_factory=list)
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> AppConfig:
        """Create AppConfig from a plain mapping.

        A bare top-level ``url`` describes a single calendar, which is how the
        environment mapping from ConfigManager is shaped.

        Raises:
            ConfigError: If a calendar entry is malformed or fails validation
        """
        if data is None:
            data = {}

        defaults = {k: v for k, v in data.items() if k in FetcherConfig.model_fields}
        defaults.pop("url", None)

        calendars_raw: Any = None
        for key in _CALENDAR_KEYS:
            if key in data:
                calendars_raw = data[key]
                break
        if calendars_raw is None:
            calendars_raw = [data["url"]] if data.get("url") else []
        if not isinstance(calendars_raw, (list, tuple)):
            logger.warning("Config `calendars` is not a list; coercing to single-item list")
            calendars_raw = [calendars_raw]

        sources = []
        for index, item in enumerate(calendars_raw):
            if isinstance(item, str):
                item = {"url": item}
            if not isinstance(item, dict):
                raise ConfigError(f"Calendar #{index} must be a URL or a mapping, got {item!r}")
            try:
                sources.append(FetcherConfig.model_validate({**defaults, **item}))
            except ValidationError as e:
                raise ConfigError(f"Invalid calendar #{index}: {e}") from e

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        return cls(sources=sources, log_level=log_level)


def _load_yaml_or_json(path: Path) -> Any:
    """Load a mapping from a YAML or JSON file."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Unable to read config file {path}: {e}") from e

    try:
        if path.suffix.lower() == ".json":
            return json.loads(text)
        loaded = yaml.safe_load(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Unable to parse config file {path}: {e}") from e

    # safe_load returns None for empty files
    return {} if loaded is None else loaded


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration from a YAML/JSON file.

    Args:
        path: Optional path to the config file; defaults to ./calendarfetcher.yaml

    Returns:
        AppConfig with values from file, or defaults when the file is missing

    Raises:
        ConfigError: If the file is unreadable, unparseable, not a mapping at
            top level, or describes an invalid calendar
    """
    p = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_PATH
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        return AppConfig()

    raw = _load_yaml_or_json(p)
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ConfigError("Config file must contain a mapping at top level")

    cfg = AppConfig.from_dict(raw)
    logger.info("Loaded %d calendar(s) from %s", len(cfg.sources), p)
    return cfg
