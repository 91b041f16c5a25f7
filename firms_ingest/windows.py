"""Walk a multi-day range backward in bounded FIRMS request blocks.

The FIRMS area CSV API caps `day_range` at 10 days, so longer spans are split into
blocks anchored on the requested end date:

    total_days=25, end=2025-08-31  ->  10d ending 08-31, 10d ending 08-21, 5d ending 08-11

Blocks are processed strictly one at a time. A failed fetch, an upstream rejection
or a failed chunk insert aborts the remaining blocks for that source.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, List, Protocol

from firms_ingest.config import FIRMS_BASE_URL, MAX_FIRMS_DAY_RANGE
from firms_ingest.errors import FetchExhausted, SourceIngestFailed, StorageChunkFailed, UpstreamRejected
from firms_ingest.firms_client import build_firms_url, check_firms_body, parse_csv_rows, redact_firms_url
from firms_ingest.logging_utils import log_event
from firms_ingest.models import IngestStats, IngestWindow
from firms_ingest.normalize import normalize_rows
from firms_ingest.upsert import DedupUpserter

LOGGER = logging.getLogger(__name__)


class Fetcher(Protocol):
    def fetch(self, url: str) -> str: ...


class WindowState(str, enum.Enum):
    PENDING_BLOCKS = "pending_blocks"
    DOWNLOADING = "downloading"
    PARSING = "parsing"
    UPSERTING = "upserting"
    DONE = "done"
    FAILED = "failed"


def plan_windows(
    source_code: str,
    area: str,
    total_days: int,
    end_date: date,
    max_block_days: int = MAX_FIRMS_DAY_RANGE,
) -> List[IngestWindow]:
    """Split `total_days` ending at `end_date` into blocks of at most `max_block_days`."""
    if total_days < 1:
        raise ValueError("total_days must be at least 1")
    if not 1 <= max_block_days <= MAX_FIRMS_DAY_RANGE:
        raise ValueError(f"max_block_days must be between 1 and {MAX_FIRMS_DAY_RANGE}")

    windows: List[IngestWindow] = []
    remaining = total_days
    block_end = end_date
    while remaining > 0:
        span = min(max_block_days, remaining)
        windows.append(IngestWindow(source_code=source_code, area=area, end_date=block_end, span_days=span))
        block_end = block_end - timedelta(days=span)
        remaining -= span
    return windows


@dataclass
class WindowIngestor:
    """Fetch, parse, normalize and upsert every block for one source."""

    fetcher: Fetcher
    upserter: DedupUpserter
    map_key: str
    base_url: str = FIRMS_BASE_URL
    max_block_days: int = MAX_FIRMS_DAY_RANGE
    on_state: Callable[[WindowState, IngestWindow | None], None] | None = None

    def ingest_source(
        self,
        source_code: str,
        area: str,
        total_days: int,
        end_date: date,
        *,
        label: str | None = None,
    ) -> IngestStats:
        """Ingest all blocks and return the folded stats.

        Raises `SourceIngestFailed` carrying the partial stats on the first failing block.
        """
        label = label or source_code
        windows = plan_windows(source_code, area, total_days, end_date, self.max_block_days)
        self._transition(WindowState.PENDING_BLOCKS, None, source=label, blocks=len(windows))

        stats = IngestStats()
        for window in windows:
            try:
                stats = stats + self._ingest_window(window, label)
            except FetchExhausted as exc:
                raise self._failed(label, window, stats, exc, status_code=exc.status_code) from exc
            except UpstreamRejected as exc:
                raise self._failed(label, window, stats, exc) from exc
            except StorageChunkFailed as exc:
                # Rows parsed for this block are counted along with what earlier chunks committed.
                partial = stats + getattr(exc, "block_stats", IngestStats(inserted=exc.inserted_before))
                raise self._failed(label, window, partial, exc) from exc

        self._transition(WindowState.DONE, None, source=label, **stats.as_dict())
        return stats

    def _ingest_window(self, window: IngestWindow, label: str) -> IngestStats:
        url = build_firms_url(
            self.map_key,
            window.source_code,
            window.area,
            window.span_days,
            window.end_date,
            base_url=self.base_url,
        )
        safe_url = redact_firms_url(url, self.map_key)

        self._transition(WindowState.DOWNLOADING, window, source=label, url=safe_url)
        started = time.perf_counter()
        text = self.fetcher.fetch(url)
        download_ms = round((time.perf_counter() - started) * 1000)
        check_firms_body(safe_url, text)

        self._transition(WindowState.PARSING, window, source=label)
        rows = parse_csv_rows(text)
        records, rejected = normalize_rows(rows)
        log_event(
            LOGGER,
            "firms.window",
            "Block downloaded",
            source=label,
            end_date=window.end_date.isoformat(),
            range_days=window.span_days,
            rows_parsed=len(rows),
            rows_valid=len(records),
            rows_rejected=rejected,
            download_ms=download_ms,
        )

        self._transition(WindowState.UPSERTING, window, source=label, rows=len(records))
        try:
            inserted = self.upserter.upsert(records)
        except StorageChunkFailed as exc:
            setattr(
                exc,
                "block_stats",
                IngestStats(parsed=len(rows), valid=len(records), inserted=exc.inserted_before),
            )
            raise
        return IngestStats(parsed=len(rows), valid=len(records), inserted=inserted)

    def _failed(
        self,
        label: str,
        window: IngestWindow,
        partial: IngestStats,
        exc: Exception,
        *,
        status_code: int | None = None,
    ) -> SourceIngestFailed:
        self._transition(
            WindowState.FAILED,
            window,
            level="error",
            source=label,
            error=str(exc),
            **partial.as_dict(),
        )
        return SourceIngestFailed(label, window, partial, status_code=status_code, reason=str(exc))

    def _transition(
        self,
        state: WindowState,
        window: IngestWindow | None,
        *,
        level: str = "info",
        **fields: object,
    ) -> None:
        if window is not None:
            fields.setdefault("end_date", window.end_date.isoformat())
            fields.setdefault("range_days", window.span_days)
        log_event(LOGGER, "firms.window", f"State {state.value}", level=level, **fields)
        if self.on_state is not None:
            self.on_state(state, window)
