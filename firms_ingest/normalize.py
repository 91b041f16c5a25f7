"""Normalize FIRMS CSV rows (VIIRS and MODIS layouts) into `FocoRecord`s."""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from firms_ingest.logging_utils import log_event
from firms_ingest.models import ACQ_ISO_FORMAT, FocoRecord

LOGGER = logging.getLogger(__name__)

VALID_LAT_RANGE = (-90.0, 90.0)
VALID_LON_RANGE = (-180.0, 180.0)

# VIIRS I-band 4 first, then MODIS band 21/22, then the band 31 fallback.
BRIGHTNESS_FIELDS = ("bright_ti4", "brightness", "bright_t31")

_HHMM = re.compile(r"^\d{3,4}$")
_HH_COLON_MM = re.compile(r"^\d{2}:\d{2}$")
_CONFIDENCE_LETTER = re.compile(r"^[lnh]$", re.IGNORECASE)


def normalize_row(row: Mapping[str, Optional[str]]) -> FocoRecord | None:
    """Convert one raw CSV row into a `FocoRecord`, or `None` if it is unusable."""
    lat = _optional_float(row.get("latitude"))
    lon = _optional_float(row.get("longitude"))
    if lat is None or lon is None:
        _log_rejection("non-numeric coordinates", row)
        return None
    if not (VALID_LAT_RANGE[0] <= lat <= VALID_LAT_RANGE[1]) or not (
        VALID_LON_RANGE[0] <= lon <= VALID_LON_RANGE[1]
    ):
        _log_rejection("out-of-range coordinates", row)
        return None

    acq_date = _clean(row.get("acq_date"))
    if not acq_date:
        _log_rejection("missing acquisition date", row)
        return None
    try:
        datetime.strptime(acq_date, "%Y-%m-%d")
    except ValueError:
        _log_rejection("malformed acquisition date", row)
        return None

    hh, mm = parse_acq_time(row.get("acq_time"))
    acq_iso = f"{acq_date}T{hh}:{mm}:00Z"
    try:
        datetime.strptime(acq_iso, ACQ_ISO_FORMAT)
    except ValueError:
        _log_rejection("malformed acquisition time", row)
        return None

    return FocoRecord(
        lat=lat,
        lon=lon,
        acq_iso=acq_iso,
        satellite=_clean(row.get("satellite")) or None,
        brightness=_pick_brightness(row),
        confidence=normalize_confidence(row.get("confidence")),
        frp=_optional_float(row.get("frp")),
    )


def normalize_rows(rows: Iterable[Mapping[str, Optional[str]]]) -> Tuple[List[FocoRecord], int]:
    """Normalize a batch of rows; returns the valid records and the rejected count."""
    records: List[FocoRecord] = []
    rejected = 0
    for row in rows:
        record = normalize_row(row)
        if record is None:
            rejected += 1
            continue
        records.append(record)
    return records, rejected


def parse_acq_time(value: Optional[str]) -> Tuple[str, str]:
    """Split FIRMS `acq_time` ("417", "0417" or "04:17") into (HH, MM).

    Anything else, including an empty value, maps to midnight.
    """
    text = _clean(value)
    if _HHMM.match(text):
        padded = text.zfill(4)
        return padded[:2], padded[2:]
    if _HH_COLON_MM.match(text):
        hh, mm = text.split(":")
        return hh, mm
    return "00", "00"


def normalize_confidence(value: Optional[str]) -> str | None:
    """Upper-case l/n/h confidence classes; numeric percentages pass through."""
    text = _clean(value)
    if _CONFIDENCE_LETTER.match(text):
        return text.upper()
    return text or None


def _pick_brightness(row: Mapping[str, Optional[str]]) -> float | None:
    for key in BRIGHTNESS_FIELDS:
        value = row.get(key)
        if value is not None and value != "":
            return _optional_float(value)
    return None


def _optional_float(value: Optional[str]) -> float | None:
    """Parse a finite float, or `None` for anything else (including `nan` and `1_000`)."""
    if value is None or value == "" or "_" in value:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _log_rejection(reason: str, row: Mapping[str, Optional[str]]) -> None:
    log_event(
        LOGGER,
        "firms.validation",
        "Dropping row",
        level="debug",
        reason=reason,
        row_ref=_row_ref(row),
    )


def _row_ref(row: Mapping[str, Optional[str]]) -> Dict[str, Optional[str]]:
    """Small reference payload to avoid logging entire rows."""
    return {
        "acq_date": row.get("acq_date"),
        "acq_time": row.get("acq_time"),
        "satellite": row.get("satellite"),
        "latitude": row.get("latitude"),
        "longitude": row.get("longitude"),
    }
