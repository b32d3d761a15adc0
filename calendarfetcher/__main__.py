"""Command-line entry for calendarfetcher.

Fetches one or more calendars and prints their upcoming events, either once
(``--once``) or on every poll until interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Sequence
from typing import Optional

from . import _init_logging

logger = logging.getLogger("calendarfetcher.cli")


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the calendarfetcher CLI."""
    parser = argparse.ArgumentParser(
        prog="calendarfetcher",
        description="Fetch calendar feeds and list their upcoming events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m calendarfetcher --url https://example.com/cal.ics --once
  python -m calendarfetcher --config calendars.yaml
        """,
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="YAML or JSON config file (default: ./calendarfetcher.yaml)",
    )
    parser.add_argument(
        "--url",
        metavar="URL",
        help="Fetch a single calendar URL (overrides calendars in the config file)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Fetch each calendar once, print its events and exit",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Root log level (default: from config or CALENDARFETCHER_LOG_LEVEL)",
    )
    return parser


def format_event(event) -> str:
    """Render one event as a single line."""
    if event.full_day:
        when = event.start.strftime("%Y-%m-%d") + " (all day)"
    else:
        when = f"{event.start:%Y-%m-%d %H:%M} - {event.end:%H:%M}"
    marker = " [recurring]" if event.recurring else ""
    return f"{when}  {event.title}{marker}"


def _print_events(fetcher) -> None:
    print(f"# {fetcher.url()} ({len(fetcher.events())} events)")
    for event in fetcher.events():
        print(f"  {format_event(event)}")


async def _run_once(sources) -> int:
    from .exceptions import TransportError
    from .fetcher import CalendarFetcher

    exit_code = 0
    for source in sources:
        async with CalendarFetcher(source) as fetcher:
            try:
                await fetcher.fetch_once()
            except TransportError as e:
                logger.error("Failed to fetch %s: %s", source.url, e)
                exit_code = 1
                continue
            _print_events(fetcher)
    return exit_code


async def _run_forever(sources) -> int:
    from .fetcher import CalendarFetcher

    fetchers = [CalendarFetcher(source) for source in sources]
    try:
        for fetcher in fetchers:
            fetcher.on_receive(_print_events)
            fetcher.on_error(
                lambda f, error: logger.error("Fetch failed for %s: %s", f.url(), error)
            )
            fetcher.start_fetch()
        await asyncio.Event().wait()
    finally:
        for fetcher in fetchers:
            await fetcher.close()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the calendarfetcher CLI.

    Returns:
        Process exit code
    """
    args = _create_parser().parse_args(argv)

    _init_logging(args.log_level or os.environ.get("CALENDARFETCHER_LOG_LEVEL"))

    from .config_loader import AppConfig, load_config
    from .config_manager import ConfigManager
    from .exceptions import ConfigError
    from .logging_config import configure_logging

    env_cfg = ConfigManager().load_full_config()
    try:
        if args.url:
            cfg = AppConfig.from_dict({**env_cfg, "url": args.url})
        else:
            cfg = load_config(args.config)
            if not cfg.sources and env_cfg.get("url"):
                cfg = AppConfig.from_dict(env_cfg)
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    level = args.log_level or cfg.log_level
    configure_logging(debug_mode=level == "DEBUG", level=level)

    if not cfg.sources:
        logger.error("No calendars configured; pass --url or provide a config file")
        return 2

    runner = _run_once if args.once else _run_forever
    try:
        return asyncio.run(runner(cfg.sources))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 0


if __name__ == "__main__":
    sys.exit(main())
