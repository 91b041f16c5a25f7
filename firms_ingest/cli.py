"""CLI entrypoint for NASA FIRMS ingestion."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date, datetime
from typing import List, Optional

from firms_ingest import repository
from firms_ingest.config import split_sources
from firms_ingest.errors import FirmsConfigError
from firms_ingest.logging_utils import configure_logging
from firms_ingest.orchestrator import IngestRequest, run_ingest

LOGGER = logging.getLogger("firms_ingest")


def _parse_ymd(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from exc


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="NASA FIRMS ingestion pipeline.")
    parser.add_argument(
        "--sources",
        type=str,
        default=None,
        help="Comma-separated FIRMS sources or labels (defaults to FIRMS_SOURCES).",
    )
    parser.add_argument(
        "--area",
        type=str,
        default=None,
        help='Bounding box "w,s,e,n" or "world" (defaults to FIRMS_AREA).',
    )
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Total number of past days to ingest; split into <=10-day requests.",
    )
    parser.add_argument(
        "--end-date",
        type=_parse_ymd,
        default=None,
        help="Last day of the range (YYYY-MM-DD, defaults to today UTC).",
    )
    parser.add_argument(
        "--continue-on-error",
        action="store_true",
        default=None,
        help="Keep ingesting remaining sources after one fails.",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create the firms_focos table before ingesting.",
    )
    return parser.parse_args(argv)


def run_cli(args: argparse.Namespace) -> int:
    """Run the FIRMS ingestion pipeline; returns the process exit code."""
    if args.create_schema:
        repository.create_schema()

    request = IngestRequest(
        sources=split_sources(args.sources),
        area=args.area,
        total_days=args.days,
        end_date=args.end_date,
        continue_on_error=args.continue_on_error,
    )
    try:
        report = run_ingest(request, store=repository.SqlDetectionStore())
    except FirmsConfigError as exc:
        LOGGER.error("Invalid FIRMS ingest configuration: %s", exc)
        return 2

    print(json.dumps(report.as_dict(), indent=2))
    return 0 if report.ok else 1


def main(argv: Optional[List[str]] = None) -> None:
    configure_logging()
    args = parse_args(argv)
    raise SystemExit(run_cli(args))


if __name__ == "__main__":
    main(sys.argv[1:])
