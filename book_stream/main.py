#!/usr/bin/env python3
"""
Book Stream - live top-of-book for KuCoin Futures over the public websocket.

Usage:
    python -m book_stream.main ETHUSDTM --depth 5

    Or, once installed:
    book-stream XBTUSDTM --tui

Controls (--tui):
    q - Quit
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from .config import DEFAULT_SYMBOL, LOG_LEVELS, FeedConfig
from .errors import FeedError

logger = logging.getLogger("book_stream")


def setup_logging(level: str) -> None:
    """Route every logger through Rich on stderr; stdout is left for the book."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


async def main(config: FeedConfig) -> None:
    """Main entry point - runs the feed, printing or feeding the TUI."""

    # Import here to avoid slow startup for --help
    from .datafeed.kucoin_client import KucoinClient

    logger.info("Starting Book Stream for %s (depth %d)", config.symbol, config.depth)
    logger.info("Topic: %s", config.topic)

    if not config.tui:
        from .ui.console import ConsoleRenderer

        client = KucoinClient(config, on_snapshot=ConsoleRenderer())
        await client.run()
        return

    from .ui.book_view import run_ui

    client = KucoinClient(config)
    feed_task = asyncio.create_task(client.run())
    ui_task = asyncio.create_task(run_ui(client.snapshot_queue))

    try:
        await asyncio.wait({feed_task, ui_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        await client.stop()
        for task in (ui_task, feed_task):
            if not task.done():
                task.cancel()
        await asyncio.gather(ui_task, return_exceptions=True)

    # Surface a feed failure (or cancellation) once the UI is gone
    try:
        await feed_task
    except asyncio.CancelledError:
        pass


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Book Stream - live top-of-book for KuCoin Futures",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m book_stream.main ETHUSDTM
    python -m book_stream.main XBTUSDTM --depth 3 --tui
    python -m book_stream.main ETHUSDTM --reconnect --read-timeout 60
        """
    )

    parser.add_argument(
        "symbol",
        nargs="?",
        default=DEFAULT_SYMBOL,
        help=f"Contract symbol (default: {DEFAULT_SYMBOL})"
    )

    parser.add_argument(
        "--topic",
        default="",
        help="Override the subscription topic (default: /contractMarket/level2Depth5:<symbol>)"
    )

    parser.add_argument(
        "--depth",
        type=int,
        default=5,
        help="Price levels kept per side (default: 5)"
    )

    parser.add_argument(
        "--read-timeout",
        type=float,
        default=None,
        help="Fail the session if no message arrives for this many seconds (default: off)"
    )

    parser.add_argument(
        "--reconnect",
        action="store_true",
        help="Start a fresh session after a transport failure instead of exiting"
    )

    parser.add_argument(
        "--tui",
        action="store_true",
        help="Full-screen ladder instead of printed tables"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=LOG_LEVELS,
        type=str.upper,
        help="Logging level (default: INFO)"
    )

    return parser


def cli(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = FeedConfig(
            symbol=args.symbol,
            topic=args.topic,
            depth=args.depth,
            read_timeout=args.read_timeout,
            reconnect=args.reconnect,
            log_level=args.log_level,
            tui=args.tui,
        )
    except ValueError as e:
        parser.error(str(e))

    setup_logging(config.log_level)

    try:
        asyncio.run(main(config))
    except FeedError as e:
        logger.error("%s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nShutdown requested.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
