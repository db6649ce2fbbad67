"""Command-line entry for calfetch.

Runs one CalendarFetcher per configured calendar and logs the events each
fetcher publishes. Stops on SIGINT/SIGTERM.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from typing import NoReturn

from .calendar_fetcher import CalendarFetcher
from .config_loader import Config, load_config
from .config_manager import ConfigManager
from .exceptions import ConfigurationError
from .fetch_logging import configure_logging
from .http_client import FeedHttpClient
from .timezone_utils import resolve_timezone

logger = logging.getLogger("calfetch")


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the calfetch CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="calfetch",
        description="calfetch - periodically fetch and filter iCalendar feeds",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m calfetch                          # Use ./calfetch.yaml
  python -m calfetch --config feeds.yaml      # Use a specific config file
  python -m calfetch --once                   # Fetch each calendar once and exit
        """,
    )
    parser.add_argument("--config", metavar="PATH", help="Path to YAML config file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--once", action="store_true", help="Run a single fetch cycle per calendar and exit"
    )
    return parser


def log_events(fetcher: CalendarFetcher) -> None:
    """Listener that writes the received events to the log."""
    events = fetcher.events()
    logger.info("Calendar %s: %d events", fetcher.url(), len(events))
    for event in events:
        logger.info(
            "  %s  %s%s",
            event.start.astimezone(fetcher.timezone).strftime("%Y-%m-%d %H:%M"),
            event.title,
            " (all day)" if event.full_day_event else "",
        )


def log_failure(fetcher: CalendarFetcher) -> None:
    logger.error("Calendar %s is unavailable; retrying at the normal interval", fetcher.url())


def build_fetchers(config: Config, http_client: FeedHttpClient) -> list[CalendarFetcher]:
    tz = resolve_timezone(config.timezone)
    fetchers = []
    for source in config.calendars:
        fetcher = CalendarFetcher.from_source(source, http_client=http_client, timezone=tz)
        fetcher.on_receive(log_events)
        fetcher.on_error(log_failure)
        fetchers.append(fetcher)
    return fetchers


async def run(config: Config, once: bool = False) -> None:
    """Run fetchers until a shutdown signal arrives (or one cycle with once)."""
    async with FeedHttpClient() as http_client:
        fetchers = build_fetchers(config, http_client)

        if once:
            await asyncio.gather(*(fetcher.fetch_calendar() for fetcher in fetchers))
            return

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        def _on_signal() -> None:
            logger.info("Shutdown signal received")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, _on_signal)

        for fetcher in fetchers:
            fetcher.start_fetch()

        await stop_event.wait()
        for fetcher in fetchers:
            fetcher.stop()
        logger.info("Shutdown complete")


def main() -> NoReturn:
    """Run the calfetch CLI."""
    args = _create_parser().parse_args()
    configure_logging(debug_mode=args.debug)

    try:
        config = ConfigManager().load_full_config(load_config(args.config))
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(2)

    configure_logging(debug_mode=args.debug, level_name=config.log_level)

    if not config.calendars:
        logger.error("No calendars configured; set `calendars` in the config or CALFETCH_ICS_URL")
        sys.exit(1)

    asyncio.run(run(config, once=args.once))
    sys.exit(0)


if __name__ == "__main__":
    main()
