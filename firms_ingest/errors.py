"""Exception hierarchy for FIRMS ingestion.

Row-level rejections never raise; `normalize_row` returns ``None`` and the
caller counts the drop. Everything below is fatal to at least one window.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from firms_ingest.models import IngestStats, IngestWindow


class FirmsIngestError(RuntimeError):
    """Base exception for all FIRMS ingestion failures."""


class FirmsConfigError(FirmsIngestError):
    """Raised for missing or invalid ingest configuration."""


class FetchExhausted(FirmsIngestError):
    """Raised when every fetch attempt for one URL failed."""

    def __init__(
        self,
        url: str,
        attempts: int,
        *,
        status_code: int | None = None,
        snippet: str | None = None,
    ) -> None:
        detail = f"status={status_code}" if status_code is not None else "no response"
        super().__init__(f"FIRMS fetch failed after {attempts} attempts ({detail}): {url}")
        self.url = url
        self.attempts = attempts
        self.status_code = status_code
        self.snippet = snippet


class UpstreamRejected(FirmsIngestError):
    """Raised when FIRMS answers 2xx but the body signals a malformed request."""

    def __init__(self, url: str, snippet: str) -> None:
        super().__init__(f"FIRMS rejected request {url}: {snippet}")
        self.url = url
        self.snippet = snippet


class StorageChunkFailed(FirmsIngestError):
    """Raised when one bulk-insert chunk fails; earlier chunks stay committed."""

    def __init__(self, chunk_index: int, chunk_size: int, inserted_before: int) -> None:
        super().__init__(
            f"Bulk insert failed for chunk {chunk_index} ({chunk_size} rows); "
            f"{inserted_before} rows from earlier chunks remain committed"
        )
        self.chunk_index = chunk_index
        self.chunk_size = chunk_size
        self.inserted_before = inserted_before


class SourceIngestFailed(FirmsIngestError):
    """Raised when one source's window walk aborts.

    Carries the stats accumulated before the failure so callers can report how
    far ingestion progressed.
    """

    def __init__(
        self,
        source: str,
        window: "IngestWindow",
        partial: "IngestStats",
        *,
        status_code: int | None = None,
        reason: str = "",
    ) -> None:
        status = status_code if status_code is not None else "n/a"
        super().__init__(
            f"FIRMS ingest failed for {source} "
            f"({window.span_days}d ending {window.end_date.isoformat()}, status={status}): {reason}"
        )
        self.source = source
        self.window = window
        self.partial = partial
        self.status_code = status_code
        self.reason = reason
