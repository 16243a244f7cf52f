# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
import threading
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from pollbase.app import (
    clean_only,
    import_raw_polls,
    inspect_raw_record,
    migrate,
    report_row_counts,
    run_full_pipeline,
    seed_reference_data,
)
from pollbase.config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from pollbase.domain.ingest_pipeline import BatchSummary, InspectionReport

log = logging.getLogger(__name__)

CANCEL = threading.Event()


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Not an integer: {value!r}") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError(f"Must be at least 1: {parsed}")
    return parsed


def _parse_ids(value: str) -> list[int]:
    try:
        return [int(token) for token in value.split(",") if token.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid id list: {value!r}") from exc


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise ValueError(message)


def _add_batch_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--retry-failed",
        action="store_true",
        help="Also re-attempt records that were rejected or failed to upsert",
    )
    parser.add_argument(
        "--workers",
        type=_positive_int,
        default=None,
        help="Number of worker threads (defaults to POLLBASE_WORKERS)",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = _ArgumentParser(description="Clean raw polling data into the pollbase store")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log at DEBUG level (else POLLBASE_LOG_LEVEL)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Seed references, import raw records, then clean")
    run.add_argument("--raw", type=Path, help="JSON Lines file of raw records to import first")
    run.add_argument("--reference", type=Path, help="TOML reference seed file to load first")
    _add_batch_options(run)

    clean = subparsers.add_parser("clean", help="Clean raw records already in the store")
    clean.add_argument("--ids", type=_parse_ids, help="Comma separated raw record ids")
    clean.add_argument("--limit", type=_positive_int, help="Maximum number of raw records")
    clean.add_argument(
        "--reprocess",
        action="store_true",
        help="Re-run every selected record, including already upserted ones",
    )
    _add_batch_options(clean)

    inspect = subparsers.add_parser("inspect", help="Show how one raw record would be cleaned")
    inspect.add_argument("raw_id", type=int, help="Raw record id")

    subparsers.add_parser("counts", help="Report row counts per table")

    import_raw = subparsers.add_parser("import-raw", help="Import raw records from JSON Lines")
    import_raw.add_argument("path", type=Path)

    seed = subparsers.add_parser("seed-reference", help="Load the reference seed file")
    seed.add_argument("path", type=Path)

    migrate_parser = subparsers.add_parser("migrate", help="Upgrade the schema to head")
    migrate_parser.add_argument("--database-uri", help="Database to migrate (defaults to config)")

    return parser.parse_args(list(argv))


def _print_summary(summary: BatchSummary) -> None:
    print(
        f"inserted={summary.inserted} updated={summary.updated} unchanged={summary.unchanged} "
        f"rejected={summary.rejected} upsert_failed={summary.upsert_failed} "
        f"total={summary.total}"
    )
    print(f"reference snapshot {summary.snapshot_version}")
    for error, count in sorted(summary.field_failures.items()):
        print(f"  {error}: {count}")
    if summary.cancelled:
        print("cancelled before all records were processed")


def _print_report(report: InspectionReport) -> None:
    raw = report.raw
    print(f"raw poll {raw.id} ({raw.source_url or 'no source'})")
    if report.status is not None:
        print(f"  stored state: {report.status.state} after {report.status.attempts} attempt(s)")
    print(f"  would reach: {report.state}")
    if report.rejection:
        print(f"  rejected: {report.rejection}")
    for field_name, failures in report.failed_fields().items():
        for failure in failures:
            print(f"  {field_name}: {failure.error}: {failure.detail}")
    if report.candidate is not None:
        candidate = report.candidate
        print(
            f"  identity: {candidate.publish_date} institute={candidate.institute_id} "
            f"scope={candidate.scope} provider={candidate.provider_id}"
        )
        print(f"  results: {len(candidate.results)} party value(s)")
    if report.planned_outcome is not None:
        target = f" (clean poll {report.existing_poll_id})" if report.existing_poll_id else ""
        print(f"  planned upsert: {report.planned_outcome}{target}")
    print(f"  reference snapshot {report.snapshot_version}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(2)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else None)

    try:
        if parsed_args.command == "run":
            result = run_full_pipeline(
                raw_path=parsed_args.raw,
                reference_path=parsed_args.reference,
                retry_failed=parsed_args.retry_failed,
                workers=parsed_args.workers,
                cancel=CANCEL,
            )
            print(f"imported={result.imported}")
            _print_summary(result.summary)
        elif parsed_args.command == "clean":
            summary = clean_only(
                ids=parsed_args.ids,
                limit=parsed_args.limit,
                retry_failed=parsed_args.retry_failed,
                reprocess=parsed_args.reprocess,
                workers=parsed_args.workers,
                cancel=CANCEL,
            )
            _print_summary(summary)
        elif parsed_args.command == "inspect":
            _print_report(inspect_raw_record(parsed_args.raw_id))
        elif parsed_args.command == "counts":
            for table, count in sorted(report_row_counts().items()):
                print(f"{table}: {count}")
        elif parsed_args.command == "import-raw":
            print(f"imported={import_raw_polls(parsed_args.path)}")
        elif parsed_args.command == "seed-reference":
            report = seed_reference_data(parsed_args.path)
            print(
                f"entities={report.entities} aliases_added={report.aliases_added} "
                f"scope_aliases_added={report.scope_aliases_added}"
            )
        elif parsed_args.command == "migrate":
            print(f"revision={migrate(database_uri=parsed_args.database_uri)}")
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """First Ctrl+C lets in-flight records finish; the second one exits."""
    if CANCEL.is_set():
        log.info("Closed by user (Ctrl+C)")
        sys.exit(130)
    log.info("Cancelling: finishing in-flight records (Ctrl+C again to quit)")
    CANCEL.set()


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
