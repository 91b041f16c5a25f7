"""Common data structures for FIRMS ingestion."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from hashlib import sha256
from typing import Any, Dict, List

ACQ_ISO_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def _format_coordinate(value: float) -> str:
    # Integral coordinates hash as "12", not "12.0".
    if value.is_integer():
        return str(int(value))
    return repr(value)


def compute_dedupe_hash(satellite: str | None, acq_iso: str, lat: float, lon: float) -> str:
    """Create a deterministic content hash for deduplication."""
    payload = f"{satellite or ''}|{acq_iso}|{_format_coordinate(lat)}|{_format_coordinate(lon)}"
    return sha256(payload.encode("utf-8")).hexdigest()


@dataclass(slots=True, frozen=True)
class FocoRecord:
    """Normalized fire detection ready for DB insertion."""

    lat: float
    lon: float
    acq_iso: str
    satellite: str | None
    brightness: float | None
    confidence: str | None
    frp: float | None

    @property
    def acquired_at(self) -> datetime:
        return datetime.strptime(self.acq_iso, ACQ_ISO_FORMAT).replace(tzinfo=timezone.utc)

    @property
    def dedupe_hash(self) -> str:
        return compute_dedupe_hash(self.satellite, self.acq_iso, self.lat, self.lon)

    def to_parameters(self) -> Dict[str, Any]:
        return {
            "id_firms": self.dedupe_hash,
            "satellite": self.satellite,
            "acq_datetime_utc": self.acquired_at,
            "brightness": self.brightness,
            "confidence": self.confidence,
            "frp": self.frp,
            "latitude": self.lat,
            "longitude": self.lon,
        }


@dataclass(slots=True, frozen=True)
class IngestWindow:
    """One bounded request against the FIRMS area API."""

    source_code: str
    area: str
    end_date: date
    span_days: int

    @property
    def start_date(self) -> date:
        return self.end_date - timedelta(days=self.span_days - 1)


@dataclass(slots=True, frozen=True)
class IngestStats:
    """Row counters for a block, a source, or a whole run."""

    parsed: int = 0
    valid: int = 0
    inserted: int = 0

    def __add__(self, other: "IngestStats") -> "IngestStats":
        if not isinstance(other, IngestStats):
            return NotImplemented
        return IngestStats(
            parsed=self.parsed + other.parsed,
            valid=self.valid + other.valid,
            inserted=self.inserted + other.inserted,
        )

    @property
    def rejected(self) -> int:
        return self.parsed - self.valid

    def as_dict(self) -> Dict[str, int]:
        return {"parsed": self.parsed, "valid": self.valid, "inserted": self.inserted}


@dataclass(slots=True)
class SourceResult:
    """Outcome of ingesting one requested source label."""

    source: str
    code: str
    stats: IngestStats = field(default_factory=IngestStats)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"source": self.source, "code": self.code, **self.stats.as_dict()}
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class IngestReport:
    """Final report returned by the orchestrator."""

    results: List[SourceResult] = field(default_factory=list)
    error: str | None = None

    @property
    def totals(self) -> IngestStats:
        return sum((result.stats for result in self.results), IngestStats())

    @property
    def ok(self) -> bool:
        return self.error is None and all(result.ok for result in self.results)

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "ok": self.ok,
            "results": [result.as_dict() for result in self.results],
            "totals": self.totals.as_dict(),
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload
