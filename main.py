#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
spotiwidget - Main Entry Point

This module serves as the entry point for the spotiwidget console host.
It initializes the application, parses command-line arguments, and starts the
interface with the requested commands.
"""

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

from spotiwidget import __version__
from spotiwidget.core.context import AppContext
from spotiwidget.core.settings import load_settings
from spotiwidget.core.token_store import TokenStore
from spotiwidget.ui.cli import CLI
from spotiwidget.utils.logger import setup_logger
from spotiwidget.utils.paths import get_log_file


def parse_arguments() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="spotiwidget - Spotify now playing in your terminal"
    )
    parser.add_argument(
        "-v", "--version", action="store_true", help="Show version information"
    )
    parser.add_argument(
        "-d", "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "-c", "--config", type=str, help="Path to custom settings file"
    )
    parser.add_argument(
        "--connect", action="store_true", help="Authorize in the browser even if a cached session exists"
    )
    parser.add_argument(
        "--library", type=str, metavar="PATH", help="Set the local music library root"
    )
    parser.add_argument(
        "--show-library", action="store_true", help="Show the configured library root"
    )
    parser.add_argument(
        "--once", action="store_true", help="Print the current playback once and exit"
    )

    return parser.parse_args()


async def main() -> int:
    """Main entry point for the application."""
    args = parse_arguments()

    if args.version:
        print(f"spotiwidget v{__version__}")
        return 0

    # Environment variables (SPOTIFY_CLIENT_ID) may come from a .env file
    load_dotenv()

    log_level = logging.DEBUG if args.debug else logging.WARNING
    setup_logger(log_level, get_log_file())
    logger = logging.getLogger(__name__)

    logger.info("Starting spotiwidget")
    logger.debug(f"Python version: {sys.version}")
    logger.debug(f"Application version: {__version__}")

    settings = load_settings(args.config)
    logger.debug(f"Loaded settings: {settings}")

    store = TokenStore(settings, settings_path=args.config)
    cli = CLI(settings, context=AppContext(settings, store=store))
    return await cli.start(
        connect=args.connect,
        library=args.library,
        show_library=args.show_library,
        once=args.once,
    )


def main_cli() -> None:
    """
    Entry point for the command-line interface.

    This function is used as the console script entry point. It wraps the
    async main function and handles exceptions.
    """
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nStopped")
        sys.exit(0)
    except Exception as e:
        logging.getLogger(__name__).exception("Unhandled exception")
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main_cli()
