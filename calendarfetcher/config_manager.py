"""Environment-based configuration for calendarfetcher."""

from __future__ import annotations

import datetime
import logging
import os
from pathlib import Path
from typing import Any

from dateutil import tz

logger = logging.getLogger(__name__)

ENV_PREFIX = "CALENDARFETCHER_"


class ConfigManager:
    """Builds a fetcher configuration mapping from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        try:
            content = self.env_file_path.read_text(encoding="utf-8")
        except OSError:
            logger.debug("Failed to read .env file %s (continuing)", self.env_file_path, exc_info=True)
            return []

        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, val = line.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")

            if key and key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build a single-source configuration mapping from environment variables.

        Recognizes:
        - CALENDARFETCHER_URL -> 'url'
        - CALENDARFETCHER_RELOAD_INTERVAL -> 'reload_interval' (seconds)
        - CALENDARFETCHER_MAX_ENTRIES -> 'maximum_entries'
        - CALENDARFETCHER_MAX_DAYS -> 'maximum_number_of_days'
        - CALENDARFETCHER_DEFAULT_TIMEZONE -> 'timezone'
        - CALENDARFETCHER_LOG_LEVEL -> 'log_level'

        Returns:
            Configuration mapping; keys are only present when set
        """
        cfg: dict[str, Any] = {}

        url = os.environ.get(f"{ENV_PREFIX}URL")
        if url:
            cfg["url"] = url

        for env_key, cfg_key, cast in (
            ("RELOAD_INTERVAL", "reload_interval", float),
            ("MAX_ENTRIES", "maximum_entries", int),
            ("MAX_DAYS", "maximum_number_of_days", int),
        ):
            raw = os.environ.get(f"{ENV_PREFIX}{env_key}")
            if not raw:
                continue
            try:
                cfg[cfg_key] = cast(raw)
            except ValueError:
                logger.warning("Invalid %s%s=%r; ignoring", ENV_PREFIX, env_key, raw)

        default_tz = os.environ.get(f"{ENV_PREFIX}DEFAULT_TIMEZONE")
        if default_tz:
            cfg["timezone"] = default_tz

        log_level = os.environ.get(f"{ENV_PREFIX}LOG_LEVEL")
        if log_level:
            cfg["log_level"] = log_level.upper()

        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Load .env file, then build configuration from environment."""
        self.load_env_file()
        return self.build_config_from_env()


def get_default_timezone() -> str | None:
    """Get the default timezone name from the environment, if valid.

    Returns:
        IANA timezone name, or None to use the host's local zone
    """
    import zoneinfo

    name = os.environ.get(f"{ENV_PREFIX}DEFAULT_TIMEZONE")
    if not name:
        return None
    try:
        zoneinfo.ZoneInfo(name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid timezone %r, falling back to host local zone", name)
        return None
    return name


def resolve_tzinfo(name: str | None) -> datetime.tzinfo:
    """Return the tzinfo for an IANA name, or the host local zone when name is None."""
    if name is None:
        return tz.tzlocal()
    import zoneinfo

    return zoneinfo.ZoneInfo(name)
