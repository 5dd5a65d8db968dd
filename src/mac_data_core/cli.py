"""Command-line interface for mac-data-core.

This module provides the main entry point for cache maintenance and for running
the deduplicator over exported message records.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import pydantic
import structlog

from mac_data_core import __version__
from mac_data_core.cache import SQLiteCache, open_calendar_cache, open_mail_cache
from mac_data_core.config import Settings, get_settings
from mac_data_core.exceptions import ConfigurationError, MacDataError
from mac_data_core.mail import HybridMailClient, MailQuery, load_sources

logger = structlog.get_logger()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mac-data", description="macOS personal data cache tools")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Cache commands
    cache_parser = subparsers.add_parser("cache", help="Inspect and maintain the local caches")
    cache_sub = cache_parser.add_subparsers(dest="cache_command", required=True)

    for name, help_text in (
        ("stats", "Show row counts and file size"),
        ("cleanup", "Delete rows older than the retention window and compact the file"),
    ):
        sub = cache_sub.add_parser(name, help=help_text)
        sub.add_argument(
            "--calendar",
            action="store_true",
            help="Operate on the calendar cache instead of the mail cache",
        )

    # Mail commands
    mail_parser = subparsers.add_parser("mail", help="Work with exported mail records")
    mail_sub = mail_parser.add_subparsers(dest="mail_command", required=True)

    dedup_parser = mail_sub.add_parser("dedup", help="Deduplicate records from a JSON file")
    dedup_parser.add_argument(
        "input",
        type=Path,
        help="JSON array of records, each tagged with a \"source\" field",
    )
    dedup_parser.add_argument(
        "--groups",
        action="store_true",
        help="Print duplicate groups instead of the unique messages",
    )
    dedup_parser.add_argument("--limit", type=int, default=None, help="Max messages returned")

    return parser


def _open_cache(settings: Settings, calendar: bool) -> SQLiteCache:
    return open_calendar_cache(settings) if calendar else open_mail_cache(settings)


def _cmd_cache_stats(args: argparse.Namespace, settings: Settings) -> int:
    cache = _open_cache(settings, args.calendar)
    stats = cache.stats()
    print(f"Cache file: {cache.db_path}")
    for table, count in stats.rows.items():
        print(f"{table}: {count} rows")
    print(f"Size: {stats.size_kb:.1f} KB")
    return 0


def _cmd_cache_cleanup(args: argparse.Namespace, settings: Settings) -> int:
    cache = _open_cache(settings, args.calendar)
    deleted = cache.cleanup()
    print(f"Deleted {deleted} rows from {cache.db_path}")
    return 0


def _cmd_mail_dedup(args: argparse.Namespace, settings: Settings) -> int:
    client = HybridMailClient(load_sources(args.input), settings=settings)
    query = MailQuery(
        days_back=settings.default_days_back,
        limit=args.limit or settings.default_limit,
        include_content=True,
    )

    if args.groups:
        report = client.find_duplicates(query)
        print(report.model_dump_json(indent=2, by_alias=True))
        return 0

    result = client.get_messages(query)
    print(result.model_dump_json(indent=2, by_alias=True, exclude={"from_cache"}))
    return 0


def _load_settings() -> Settings:
    try:
        return get_settings()
    except pydantic.ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


def main(args: list[str] | None = None) -> int:
    """Main entry point for the mac-data CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    parser = _build_parser()
    parsed = parser.parse_args(args)

    try:
        settings = _load_settings()
    except ConfigurationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    # Configure logging
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )

    logger.info("mac_data_cli_started", version=__version__, debug=settings.debug)

    try:
        if parsed.command == "cache":
            if parsed.cache_command == "stats":
                return _cmd_cache_stats(parsed, settings)
            if parsed.cache_command == "cleanup":
                return _cmd_cache_cleanup(parsed, settings)

        if parsed.command == "mail" and parsed.mail_command == "dedup":
            return _cmd_mail_dedup(parsed, settings)
    except MacDataError as exc:
        logger.error("command_failed", command=parsed.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logger.error("unknown_command", command=parsed.command)
    return 2


if __name__ == "__main__":
    sys.exit(main())
