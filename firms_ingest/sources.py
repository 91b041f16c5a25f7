"""Map free-form FIRMS source labels onto the API's canonical source codes.

Labels arrive from env config or query strings in whatever shape operators type
them ("VIIRS S-NPP (URT+NRT)", "viirs_snpp_nrt", "MODIS"). The FIRMS area API only
accepts a fixed set of codes, so anything we cannot map is returned as given and
the upstream rejection surfaces in the ingest error instead of a silent guess.
"""

from __future__ import annotations

import re
from typing import Dict, FrozenSet, Tuple

VALID_SOURCE_CODES: FrozenSet[str] = frozenset(
    {
        "VIIRS_SNPP_NRT",
        "VIIRS_NOAA20_NRT",
        "VIIRS_NOAA21_NRT",
        "MODIS_NRT",
        "MODIS_SP",
        "VIIRS_SNPP_SP",
        "VIIRS_NOAA20_SP",
        "VIIRS_NOAA21_SP",
    }
)

# Keys are collapsed labels: single spaces, no "-()", "+" without padding, upper-case.
SOURCE_ALIASES: Dict[str, str] = {
    "VIIRS S NPP URT+NRT": "VIIRS_SNPP_NRT",
    "VIIRS SNPP URT+NRT": "VIIRS_SNPP_NRT",
    "VIIRS S NPP": "VIIRS_SNPP_NRT",
    "VIIRS S NPP NRT": "VIIRS_SNPP_NRT",
    "VIIRS NOAA 20 URT+NRT": "VIIRS_NOAA20_NRT",
    "VIIRS NOAA20 URT+NRT": "VIIRS_NOAA20_NRT",
    "VIIRS NOAA 20": "VIIRS_NOAA20_NRT",
    "VIIRS NOAA 20 NRT": "VIIRS_NOAA20_NRT",
    "VIIRS NOAA 21 URT+NRT": "VIIRS_NOAA21_NRT",
    "VIIRS NOAA21 URT+NRT": "VIIRS_NOAA21_NRT",
    "VIIRS NOAA 21": "VIIRS_NOAA21_NRT",
    "VIIRS NOAA 21 NRT": "VIIRS_NOAA21_NRT",
    "MODIS URT+NRT": "MODIS_NRT",
    "MODIS NRT": "MODIS_NRT",
    "MODIS": "MODIS_NRT",
    "MODIS SP": "MODIS_SP",
    "VIIRS S NPP SP": "VIIRS_SNPP_SP",
    "VIIRS NOAA 20 SP": "VIIRS_NOAA20_SP",
    "VIIRS NOAA 21 SP": "VIIRS_NOAA21_SP",
}

# Bare "<family> <platform>" shorthands default to the near-real-time feed.
FALLBACK_RULES: Tuple[Tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^VIIRS\s+SNPP$", re.IGNORECASE), "VIIRS_SNPP_NRT"),
    (re.compile(r"^VIIRS\s+NOAA[-\s]*20$", re.IGNORECASE), "VIIRS_NOAA20_NRT"),
    (re.compile(r"^VIIRS\s+NOAA[-\s]*21$", re.IGNORECASE), "VIIRS_NOAA21_NRT"),
)

_URT_NRT_CODE = re.compile(r"^VIIRS_(SNPP|NOAA20|NOAA21)_URT_NRT$")


def collapse_label(label: str) -> str:
    """Collapse a label into the alias-table key form."""
    key = re.sub(r"\s+", " ", label)
    key = re.sub(r"[-()]", "", key)
    key = re.sub(r"\s*\+\s*", "+", key)
    return key.upper().strip()


def normalize_source(label: str) -> str:
    """Return the canonical FIRMS source code for `label`, or the trimmed label."""
    if not label:
        return label
    raw = label.strip()
    upper = raw.upper()

    if upper in VALID_SOURCE_CODES:
        return upper

    if _URT_NRT_CODE.match(upper):
        return upper.replace("_URT_NRT", "_NRT")

    alias = SOURCE_ALIASES.get(collapse_label(raw))
    if alias:
        return alias

    for pattern, code in FALLBACK_RULES:
        if pattern.match(raw):
            return code

    return raw


def is_canonical_source(code: str) -> bool:
    return code in VALID_SOURCE_CODES
