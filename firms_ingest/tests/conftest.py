"""Pytest configuration for firms_ingest tests.

This configuration file:
1. Adds the workspace root to sys.path so `firms_ingest` imports without an install
2. Provides FIRMS CSV bodies, a scripted fetcher and stores (in-memory and SQLite)
"""
import sys
from pathlib import Path
from typing import Any, Dict, List, Sequence

import pytest
from sqlalchemy import create_engine, func, select

workspace_root = Path(__file__).parent.parent.parent
if str(workspace_root) not in sys.path:
    sys.path.insert(0, str(workspace_root))

from firms_ingest.config import FirmsIngestSettings  # noqa: E402
from firms_ingest.repository import SqlDetectionStore, create_schema, firms_focos  # noqa: E402

VIIRS_CSV = (
    "latitude,longitude,bright_ti4,scan,track,acq_date,acq_time,satellite,instrument,"
    "confidence,version,bright_ti5,frp,daynight\n"
    "-10.12345,-55.54321,330.5,0.39,0.36,2025-08-30,417,N,VIIRS,n,2.0NRT,295.1,5.3,N\n"
    "-10.2,-55.6,341.2,0.4,0.37,2025-08-30,1532,N,VIIRS,h,2.0NRT,300.2,12.8,D\n"
    "not-a-number,-55.6,341.2,0.4,0.37,2025-08-30,1532,N,VIIRS,h,2.0NRT,300.2,12.8,D\n"
    "-11.0,-56.0,320.0,0.4,0.37,,1532,N,VIIRS,l,2.0NRT,300.2,1.1,D\n"
)

MODIS_CSV = (
    "latitude,longitude,brightness,scan,track,acq_date,acq_time,satellite,instrument,"
    "confidence,version,bright_t31,frp,daynight\n"
    "-8.5,-60.25,315.4,1.0,1.0,2025-08-29,0130,Terra,MODIS,85,6.1NRT,290.0,20.5,N\n"
    "\n"
    "-8.75,-60.5,,1.0,1.0,2025-08-29,13:45,Aqua,MODIS,40,6.1NRT,291.5,,D\n"
)


class ScriptedFetcher:
    """Fetcher that answers from a queue (or a callable) and records requested URLs."""

    def __init__(self, responses: Any) -> None:
        self.responses = responses
        self.urls: List[str] = []

    def fetch(self, url: str) -> str:
        self.urls.append(url)
        if callable(self.responses):
            result = self.responses(url)
        else:
            result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class MemoryStore:
    """In-memory store with insert-ignore semantics on (id_firms, acq_datetime_utc)."""

    def __init__(self, fail_on_call: int | None = None) -> None:
        self.rows: Dict[tuple, Dict[str, Any]] = {}
        self.calls: List[int] = []
        self.fail_on_call = fail_on_call

    def insert_ignoring_conflicts(self, rows: Sequence[Dict[str, Any]]) -> int:
        self.calls.append(len(rows))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise RuntimeError("statement timeout")
        inserted = 0
        for row in rows:
            key = (row["id_firms"], row["acq_datetime_utc"])
            if key not in self.rows:
                self.rows[key] = dict(row)
                inserted += 1
        return inserted


@pytest.fixture
def viirs_csv() -> str:
    return VIIRS_CSV


@pytest.fixture
def modis_csv() -> str:
    return MODIS_CSV


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def sqlite_store(tmp_path) -> SqlDetectionStore:
    engine = create_engine(f"sqlite:///{tmp_path / 'focos.db'}", future=True)
    create_schema(engine)
    return SqlDetectionStore(engine)


@pytest.fixture
def ingest_config() -> FirmsIngestSettings:
    return FirmsIngestSettings(
        map_key="test-key",
        sources=["VIIRS_SNPP_NRT"],
        area="world",
        day_range=1,
        backoff_seconds=0.0,
    )


@pytest.fixture
def make_fetcher():
    return ScriptedFetcher


@pytest.fixture
def make_store():
    return MemoryStore


@pytest.fixture
def count_rows():
    def _count(store: SqlDetectionStore) -> int:
        with store.engine.connect() as conn:
            return int(conn.scalar(select(func.count()).select_from(firms_focos)))

    return _count
