from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from aafsync.app import list_feed_archives, recent_runs, synchronize_archive
from aafsync.config import ConfigurationError, configure_logging
from aafsync.domain.model import Category, FeedFormat, RunMode

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from aafsync.domain.sync import RunResult

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronise the directory with AAF feeds")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at DEBUG level",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Diff (and optionally apply) one feed archive")
    sync.add_argument(
        "archive",
        type=str,
        help="Path to the archive, or its name inside AAFSYNC_FEED_DIR",
    )
    sync.add_argument(
        "--category",
        dest="categories",
        action="append",
        choices=[category.value for category in Category],
        help="Category to synchronise (repeatable, defaults to all)",
    )
    sync.add_argument(
        "--structure",
        dest="structure_ids",
        action="append",
        help="Structure id to restrict the run to (repeatable, defaults to all enabled)",
    )
    sync.add_argument(
        "--apply",
        action="store_true",
        help="Commit the changes (default is a dry run)",
    )
    sync.add_argument(
        "--format",
        choices=[feed_format.value for feed_format in FeedFormat],
        help="Feed format (defaults to the one inferred from the archive name)",
    )
    sync.add_argument(
        "--automatic",
        action="store_true",
        help="Record the run as scheduled rather than manual",
    )
    sync.add_argument(
        "--diff-output",
        type=str,
        help="Write the full run result as JSON to this file ('-' for stdout)",
    )

    subparsers.add_parser("files", help="List the archives of the feed directory")

    runs = subparsers.add_parser("runs", help="Show recently recorded runs")
    runs.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Number of runs to show (default: %(default)s)",
    )

    return parser.parse_args(list(argv))


def _validate(args: argparse.Namespace) -> None:
    if args.command == "runs" and args.limit <= 0:
        raise ValueError("--limit must be positive")
    if args.command == "sync" and args.structure_ids is not None:
        blank = [value for value in args.structure_ids if not value.strip()]
        if blank:
            raise ValueError("--structure requires a non-empty structure id")


def _write_result(result: RunResult, destination: str) -> None:
    payload = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
    if destination == "-":
        sys.stdout.write(payload + "\n")
        return
    Path(destination).write_text(payload + "\n", encoding="utf-8")
    log.info("Wrote run result to %s", destination)


def _run_sync(args: argparse.Namespace) -> None:
    result = synchronize_archive(
        args.archive,
        categories=(
            [Category(value) for value in args.categories] if args.categories else None
        ),
        structure_ids=args.structure_ids,
        apply=args.apply,
        format=FeedFormat(args.format) if args.format else None,
        mode=RunMode.AUTOMATIC if args.automatic else RunMode.MANUAL,
    )
    for stage, stats in result.stats.items():
        log.info(
            "%s: count=%s, added=%s, changed=%s, removed=%s",
            stage,
            stats.count,
            stats.added,
            stats.changed,
            stats.removed,
        )
    for message in result.errors:
        log.warning("%s", message)
    if args.diff_output:
        _write_result(result, args.diff_output)


def _run_files() -> None:
    for archive in list_feed_archives():
        log.info(
            "%s  %s  %s bytes  %s",
            archive.name,
            archive.format.value,
            archive.size,
            archive.modified.isoformat(timespec="seconds"),
        )


def _run_runs(args: argparse.Namespace) -> None:
    for run in recent_runs(args.limit):
        log.info(
            "#%s %s %s %s applied=%s added=%s changed=%s removed=%s errors=%s%s",
            run.id,
            run.started_at.isoformat(timespec="seconds"),
            run.source or "-",
            run.format.value,
            run.applied,
            run.added,
            run.changed,
            run.removed,
            run.error_count,
            f" failed: {run.exception}" if run.exception else "",
        )


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        configure_logging(level=logging.DEBUG if parsed_args.verbose else None)
        _validate(parsed_args)
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "sync":
            _run_sync(parsed_args)
        elif parsed_args.command == "files":
            _run_files()
        elif parsed_args.command == "runs":
            _run_runs(parsed_args)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except ConfigurationError as exc:
        log.error("Configuration problem (check %s): %s", ", ".join(exc.variables) or "-", exc)
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
