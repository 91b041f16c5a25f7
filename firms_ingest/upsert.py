"""Chunked, idempotent bulk insert of normalized detections."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Protocol, Sequence, runtime_checkable

from firms_ingest.errors import StorageChunkFailed
from firms_ingest.logging_utils import log_event
from firms_ingest.models import FocoRecord

LOGGER = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 800


@runtime_checkable
class DetectionStore(Protocol):
    """Write-side store for canonical detections."""

    def insert_ignoring_conflicts(self, rows: Sequence[Dict[str, Any]]) -> int:
        """Insert rows, skipping any whose (id_firms, acq_datetime_utc) already exists.

        Returns the number of rows actually inserted. Each call commits on its own.
        """
        ...


class DedupUpserter:
    """Hash, chunk and insert detections; returns how many rows were new."""

    def __init__(self, store: DetectionStore, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.store = store
        self.chunk_size = chunk_size

    def upsert(self, records: Sequence[FocoRecord]) -> int:
        if not records:
            return 0

        inserted_total = 0
        for index, start in enumerate(range(0, len(records), self.chunk_size)):
            chunk = records[start : start + self.chunk_size]
            started = time.perf_counter()
            try:
                rows: List[Dict[str, Any]] = [record.to_parameters() for record in chunk]
                inserted = self.store.insert_ignoring_conflicts(rows)
            except Exception as exc:
                log_event(
                    LOGGER,
                    "firms.upsert",
                    "Chunk insert failed",
                    level="error",
                    chunk_index=index,
                    chunk_rows=len(chunk),
                    inserted_before=inserted_total,
                    error=str(exc),
                )
                raise StorageChunkFailed(index, len(chunk), inserted_total) from exc

            inserted_total += inserted
            log_event(
                LOGGER,
                "firms.upsert",
                "Chunk inserted",
                chunk_index=index,
                chunk_rows=len(rows),
                inserted=inserted,
                duplicates=len(rows) - inserted,
                insert_ms=round((time.perf_counter() - started) * 1000),
            )

        return inserted_total
