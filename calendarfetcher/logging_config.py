"""
Central logging configuration for calendarfetcher.

Quiets the chatty third-party loggers (httpx, httpcore, asyncio) while keeping
calendarfetcher's own modules at INFO, or DEBUG when troubleshooting.
"""

import logging
import os
from typing import Optional

# Third-party loggers that flood DEBUG output during every poll cycle
NOISY_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "charset_normalizer": logging.WARNING,
    "icalendar": logging.INFO,
}

PACKAGE_LOGGERS = [
    "calendarfetcher",
    "calendarfetcher.fetcher",
    "calendarfetcher.scheduler",
    "calendarfetcher.transport",
    "calendarfetcher.decoder",
    "calendarfetcher.normalizer",
    "calendarfetcher.event_filter",
]

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def configure_logging(
    debug_mode: bool = False,
    force_debug: Optional[bool] = None,
    level: Optional[str] = None,
) -> None:
    """
    Configure logger levels for calendarfetcher.

    Args:
        debug_mode: Whether to enable debug logging for calendarfetcher modules
        force_debug: Override debug mode setting (None to use env var detection)
        level: Root level name from configuration; the environment still wins

    Environment Variables:
        CALENDARFETCHER_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CALENDARFETCHER_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("CALENDARFETCHER_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("CALENDARFETCHER_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if level and level.upper() in _VALID_LEVELS and not final_debug:
        root_level = getattr(logging, level.upper())
    if env_log_level in _VALID_LEVELS:
        root_level = getattr(logging, env_log_level)

    # Don't use basicConfig(force=True); a handler from _init_logging is kept
    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s - %(name)s - %(message)s")
        )
        root_logger.addHandler(handler)

    logger_config = dict(NOISY_LOGGERS)
    package_level = logging.DEBUG if final_debug else logging.INFO
    for module in PACKAGE_LOGGERS:
        logger_config[module] = package_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info("Debug logging enabled for calendarfetcher modules")
    else:
        root_logger.debug("Production logging configuration applied")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["calendarfetcher", "httpx", "httpcore", "asyncio"]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
