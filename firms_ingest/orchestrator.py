"""Drive FIRMS ingestion across one or more sources and fold the stats."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Optional

from firms_ingest.config import FirmsIngestSettings, resolve_area
from firms_ingest.config import settings as ingest_settings
from firms_ingest.errors import FirmsConfigError, SourceIngestFailed
from firms_ingest.firms_client import FetchRetrier, redact_firms_url
from firms_ingest.logging_utils import log_event
from firms_ingest.models import IngestReport, SourceResult
from firms_ingest.sources import is_canonical_source, normalize_source
from firms_ingest.upsert import DedupUpserter, DetectionStore
from firms_ingest.windows import Fetcher, WindowIngestor

LOGGER = logging.getLogger(__name__)


@dataclass
class IngestRequest:
    """Inputs of one ingestion run; unset fields fall back to settings."""

    sources: Optional[List[str]] = None
    area: Optional[str] = None
    total_days: Optional[int] = None
    end_date: Optional[date] = None
    continue_on_error: Optional[bool] = None


def run_ingest(
    request: IngestRequest,
    *,
    store: DetectionStore,
    fetcher: Fetcher | None = None,
    config: FirmsIngestSettings | None = None,
) -> IngestReport:
    """Ingest every requested source in sequence and return the report.

    By default the run stops at the first failing source; the report still carries
    the stats gathered up to that point. With `continue_on_error` the remaining
    sources are attempted and each failure is recorded on its own result.
    """
    config = config or ingest_settings
    if not config.map_key:
        raise FirmsConfigError("FIRMS_MAP_KEY is not configured")

    try:
        area = resolve_area(request.area) if request.area else config.resolved_area
    except ValueError as exc:
        raise FirmsConfigError(str(exc)) from exc
    total_days = request.total_days if request.total_days is not None else config.day_range
    if total_days < 1:
        raise FirmsConfigError("total_days must be at least 1")
    end_date = request.end_date or datetime.now(timezone.utc).date()
    labels = request.sources or config.sources
    continue_on_error = (
        request.continue_on_error if request.continue_on_error is not None else config.continue_on_error
    )

    owns_fetcher = fetcher is None
    if fetcher is None:
        fetcher = FetchRetrier(
            timeout_seconds=config.request_timeout_seconds,
            max_attempts=config.max_attempts,
            backoff_seconds=config.backoff_seconds,
            redact=lambda url: redact_firms_url(url, config.map_key),
        )

    ingestor = WindowIngestor(
        fetcher=fetcher,
        upserter=DedupUpserter(store, chunk_size=config.upsert_chunk_size),
        map_key=config.map_key,
        base_url=config.api_base,
        max_block_days=config.max_block_days,
    )

    started = time.perf_counter()
    log_event(
        LOGGER,
        "firms.ingest",
        "Starting FIRMS ingestion",
        sources=labels,
        area=area,
        total_days=total_days,
        end_date=end_date.isoformat(),
        db=config.masked_database_url,
    )

    report = IngestReport()
    try:
        for label in labels:
            code = normalize_source(label)
            if not is_canonical_source(code):
                log_event(
                    LOGGER,
                    "firms.ingest",
                    "Unrecognized source label; requesting it verbatim",
                    level="warning",
                    source=label,
                )
            result = SourceResult(source=label, code=code)
            report.results.append(result)
            try:
                result.stats = ingestor.ingest_source(code, area, total_days, end_date, label=label)
            except SourceIngestFailed as exc:
                result.stats = exc.partial
                result.error = str(exc)
                if not continue_on_error:
                    report.error = str(exc)
                    LOGGER.exception("Ingest failed for source=%s", label)
                    break
                log_event(LOGGER, "firms.ingest", "Source failed; continuing", level="warning", source=label)
    finally:
        if owns_fetcher and isinstance(fetcher, FetchRetrier):
            fetcher.close()

    log_event(
        LOGGER,
        "firms.ingest",
        "FIRMS ingestion finished" if report.ok else "FIRMS ingestion finished with errors",
        level="info" if report.ok else "error",
        duration_ms=round((time.perf_counter() - started) * 1000),
        **report.totals.as_dict(),
    )
    return report
