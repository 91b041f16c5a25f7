"""Helpers for downloading and parsing NASA FIRMS area CSV feeds."""

from __future__ import annotations

import csv
import io
import logging
import re
import time
from datetime import date
from typing import Callable, Dict, List, Optional
from urllib.parse import quote

import httpx

from firms_ingest.config import FIRMS_BASE_URL
from firms_ingest.errors import FetchExhausted, UpstreamRejected
from firms_ingest.logging_utils import log_event

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 0.5
SNIPPET_LIMIT = 240

_INVALID_BODY = re.compile(r'^"?Invalid', re.IGNORECASE)


def build_firms_url(
    map_key: str,
    source: str,
    area: str,
    day_range: int,
    end_date: date | str | None = None,
    *,
    base_url: str = FIRMS_BASE_URL,
) -> str:
    """Construct the FIRMS area API URL for a given source and spatial window."""
    base = f"{base_url.rstrip('/')}/{quote(map_key, safe='')}/{quote(source, safe='')}/{area}/{day_range}"
    if end_date is None:
        return base
    suffix = end_date.isoformat() if isinstance(end_date, date) else end_date
    return f"{base}/{suffix}"


def redact_firms_url(url: str, map_key: str) -> str:
    """Mask the map key so URLs can be logged."""
    if not map_key:
        return url
    return url.replace(quote(map_key, safe=""), "****").replace(map_key, "****")


def response_snippet(text: str, limit: int = SNIPPET_LIMIT) -> str:
    return text[:limit].strip() if text else ""


def check_firms_body(url: str, text: str) -> None:
    """Raise `UpstreamRejected` when a 2xx body is an HTML page or an "Invalid ..." message."""
    head = text.lstrip()
    if head.startswith("<") or _INVALID_BODY.match(head):
        raise UpstreamRejected(url, response_snippet(text))


def parse_csv_rows(text: str) -> List[Dict[str, str]]:
    """Decode a FIRMS CSV body into trimmed row dicts, skipping blank lines."""
    reader = csv.DictReader(io.StringIO(text))
    if reader.fieldnames is None:
        return []
    reader.fieldnames = [name.strip() for name in reader.fieldnames]

    rows: List[Dict[str, str]] = []
    for raw in reader:
        row = {key: (value or "").strip() for key, value in raw.items() if key is not None}
        if not any(row.values()):
            continue
        rows.append(row)
    return rows


class FetchRetrier:
    """HTTP GET with a per-attempt timeout, exponential backoff and a fixed attempt budget.

    Every failed attempt (transport error, timeout or non-2xx status) is followed by a
    ``backoff_seconds * 2**attempt`` sleep: 0.5s, 1s, 2s with the defaults.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        redact: Callable[[str], str] = lambda url: url,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self._redact = redact

    def fetch(self, url: str) -> str:
        """Return the response body, or raise `FetchExhausted` once all attempts fail."""
        safe_url = self._redact(url)
        last_error: Exception | None = None
        status_code: int | None = None
        snippet: str | None = None

        for attempt in range(self.max_attempts):
            try:
                response = self._get(url)
                if not response.is_success:
                    status_code = response.status_code
                    snippet = response_snippet(response.text)
                    raise httpx.HTTPStatusError(
                        f"Error response {response.status_code} while requesting {safe_url}",
                        request=response.request,
                        response=response,
                    )
                return response.text
            except httpx.HTTPError as exc:
                last_error = exc
                if not isinstance(exc, httpx.HTTPStatusError):
                    status_code = None
                    snippet = None
                sleep_s = self.backoff_seconds * (2**attempt)
                log_event(
                    LOGGER,
                    "firms.fetch",
                    "Fetch attempt failed",
                    level="warning",
                    url=safe_url,
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                    status_code=status_code,
                    error=type(exc).__name__,
                    backoff_seconds=sleep_s,
                )
                self._sleep(sleep_s)

        raise FetchExhausted(
            safe_url,
            self.max_attempts,
            status_code=status_code,
            snippet=snippet,
        ) from last_error

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "FetchRetrier":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _get(self, url: str) -> httpx.Response:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout_seconds)
        return self._client.get(url, timeout=self.timeout_seconds)
