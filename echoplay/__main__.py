"""
Echoplay - Entry Point

Run with: python -m echoplay
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

from echoplay.app import EchoApp
from echoplay.config import ClientConfig, load_client_config


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="echoplay",
        description="Echoplay - Music streaming client for the Echo backend",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to a client.toml (default: bundled config)",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Control API host (default: from config, 127.0.0.1)",
    )

    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=None,
        help="Control API port (default: from config, 8765)",
    )

    parser.add_argument(
        "--base-url",
        type=str,
        default=None,
        help="Catalog backend URL (default: from config)",
    )

    parser.add_argument(
        "--session-db",
        type=str,
        default=None,
        help="SQLite file for the saved session (default: from config)",
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ClientConfig:
    """Load the config file and apply command line overrides."""
    config = load_client_config(args.config)

    if args.base_url:
        config.backend = replace(config.backend, base_url=args.base_url)
    if args.session_db:
        config.session = replace(config.session, db_path=args.session_db)
    if args.host:
        config.web = replace(config.web, host=args.host)
    if args.port is not None:
        config.web = replace(config.web, port=args.port)

    return config


async def run_app(config: ClientConfig) -> None:
    """Start and run the Echoplay client."""
    app = EchoApp(config)
    await app.run()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the application."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    logger = logging.getLogger(__name__)
    logger.info("Starting Echoplay...")

    try:
        config = build_config(args)
        asyncio.run(run_app(config))
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1

    logger.info("Echoplay stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
