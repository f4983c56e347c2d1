"""LandScout Entry Point.

This module is the bootstrap and command-line layer. It contains no
acquisition logic - everything functional lives in /landscout.

Responsibilities:
    1. Load and validate configuration
    2. Initialize logging infrastructure (fail-fast on error)
    3. Dispatch one request-surface command and print its JSON result
    4. Release the browser session on exit, including SIGINT/SIGTERM

Usage:
    python main.py summary 포레나송파 --size 84
    python main.py batch --force
    python main.py listings 139917 jeonse --size 84
"""

import argparse
import asyncio
import json
import signal
import sys
from typing import Any

from loguru import logger

from config.settings import GlobalConfig, get_config
from landscout.exceptions import LandScoutError, LoggingInitializationError
from landscout.logger import configure_logging
from landscout.models import TradeCategory
from landscout.service import LandScoutService


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="landscout",
        description="Naver Land listing acquisition with a shared browser session.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    resolve = commands.add_parser("resolve", help="Resolve a complex name to its identifier")
    resolve.add_argument("name")

    listings = commands.add_parser("listings", help="Listing stats for one trade category")
    listings.add_argument("identifier")
    listings.add_argument("category", choices=[member.value for member in TradeCategory])
    listings.add_argument("--size", type=int, default=84, help="Size bracket in ㎡")

    info = commands.add_parser("info", help="Name, address and unit count of a complex")
    info.add_argument("identifier")

    summary = commands.add_parser("summary", help="Three-category summary for one complex")
    summary.add_argument("name")
    summary.add_argument("--size", type=int, default=84, help="Size bracket in ㎡")

    batch = commands.add_parser("batch", help="Summaries for every configured target")
    batch.add_argument("--force", action="store_true", help="Ignore the cached batch")

    commands.add_parser("targets", help="Configured target complexes")
    commands.add_parser("cache-status", help="Cache contents and freshness")

    return parser


async def _dispatch(service: LandScoutService, args: argparse.Namespace) -> Any:
    match args.command:
        case "resolve":
            return await service.resolve(args.name)
        case "listings":
            return await service.listings(args.identifier, args.category, args.size)
        case "info":
            return await service.info(args.identifier)
        case "summary":
            return await service.summary(args.name, args.size)
        case "batch":
            return await service.batch_summary(force_refresh=args.force)
        case "targets":
            return service.targets()
        case "cache-status":
            return service.cache_status()
    raise ValueError(f"Unknown command: {args.command}")


def _install_signal_handlers(task: asyncio.Task) -> None:
    """Cancel the running command on SIGINT/SIGTERM so teardown can run."""
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, task.cancel)
        except NotImplementedError:
            # Windows event loops; KeyboardInterrupt still reaches main()
            logger.debug("Signal handlers unavailable", signal=signum)


async def _run(config: GlobalConfig, args: argparse.Namespace) -> int:
    """Execute one command against a fresh service.

    Returns:
        Exit code (0 for success, 130 when interrupted).
    """
    async with LandScoutService.create(config) as service:
        task = asyncio.ensure_future(_dispatch(service, args))
        _install_signal_handlers(task)

        try:
            result = await task
        except asyncio.CancelledError:
            logger.warning("Command interrupted, releasing browser session")
            return 130

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Application entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    args = _build_parser().parse_args(argv)

    try:
        config = get_config()
    except Exception as exc:
        # Cannot log yet - print to stderr
        print(f"FATAL: Configuration loading failed: {exc}", file=sys.stderr)
        return 1

    try:
        configure_logging(config)
    except LoggingInitializationError as exc:
        print(f"FATAL: {exc}", file=sys.stderr)
        return 1

    try:
        return asyncio.run(_run(config, args))
    except KeyboardInterrupt:
        logger.warning("Interrupted by user (Ctrl+C)")
        return 130
    except LandScoutError as exc:
        logger.critical(
            "Fatal application error",
            error_type=type(exc).__name__,
            message=exc.message,
            context=exc.context,
        )
        return 1
    except Exception as exc:
        logger.exception("Unexpected fatal error", error=str(exc))
        return 1


if __name__ == "__main__":
    sys.exit(main())
