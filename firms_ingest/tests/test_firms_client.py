from __future__ import annotations

from datetime import date

import httpx
import pytest

from firms_ingest.errors import FetchExhausted, UpstreamRejected
from firms_ingest.firms_client import (
    FetchRetrier,
    build_firms_url,
    check_firms_body,
    parse_csv_rows,
    redact_firms_url,
)


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _client(responses):
    """httpx client whose transport replays `responses` (Response objects or exceptions)."""
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_build_firms_url_with_end_date():
    url = build_firms_url(
        "abc123",
        "VIIRS_SNPP_NRT",
        "-180,-90,180,90",
        10,
        date(2025, 8, 31),
        base_url="https://firms.example/api/area/csv/",
    )
    assert url == "https://firms.example/api/area/csv/abc123/VIIRS_SNPP_NRT/-180,-90,180,90/10/2025-08-31"


def test_build_firms_url_quotes_path_segments_and_redacts_key():
    url = build_firms_url("k/ey", "VIIRS S NPP", "world", 1)
    assert "/k%2Fey/VIIRS%20S%20NPP/world/1" in url
    assert "k%2Fey" not in redact_firms_url(url, "k/ey")
    assert redact_firms_url(url, "") == url


@pytest.mark.parametrize(
    "body",
    [
        "<!DOCTYPE html><html><body>Error</body></html>",
        "  <html>",
        "Invalid MAP_KEY.",
        '"Invalid source: VIIRS_FOO"',
        "invalid area coordinates",
    ],
)
def test_check_firms_body_rejects_error_pages(body):
    with pytest.raises(UpstreamRejected) as excinfo:
        check_firms_body("https://firms.example/x", body)
    assert excinfo.value.snippet


def test_check_firms_body_accepts_csv(viirs_csv):
    check_firms_body("https://firms.example/x", viirs_csv)
    check_firms_body("https://firms.example/x", "")


def test_parse_csv_rows_trims_headers_and_values():
    text = " latitude , longitude ,acq_date\n -10.5 , -55.2 ,2025-08-30\n\n,,\n"
    rows = parse_csv_rows(text)
    assert rows == [{"latitude": "-10.5", "longitude": "-55.2", "acq_date": "2025-08-30"}]


def test_parse_csv_rows_empty_body():
    assert parse_csv_rows("") == []
    assert parse_csv_rows("latitude,longitude\n") == []


def test_fetch_returns_body_on_first_success():
    sleeper = SleepRecorder()
    retrier = FetchRetrier(client=_client([httpx.Response(200, text="latitude\n1\n")]), sleep=sleeper)

    assert retrier.fetch("https://firms.example/csv") == "latitude\n1\n"
    assert sleeper.delays == []


def test_fetch_retries_with_exponential_backoff_then_succeeds():
    sleeper = SleepRecorder()
    client = _client(
        [
            httpx.ConnectError("connection refused"),
            httpx.Response(503, text="Service Unavailable"),
            httpx.Response(200, text="ok"),
        ]
    )
    retrier = FetchRetrier(client=client, sleep=sleeper)

    assert retrier.fetch("https://firms.example/csv") == "ok"
    assert sleeper.delays == [0.5, 1.0]
    assert sum(sleeper.delays) >= 1.5


def test_fetch_raises_fetch_exhausted_after_three_failures():
    sleeper = SleepRecorder()
    client = _client(
        [
            httpx.ReadTimeout("timed out"),
            httpx.Response(500, text="boom"),
            httpx.Response(502, text="Bad Gateway"),
        ]
    )
    retrier = FetchRetrier(client=client, sleep=sleeper)

    with pytest.raises(FetchExhausted) as excinfo:
        retrier.fetch("https://firms.example/csv")

    exc = excinfo.value
    assert exc.attempts == 3
    assert exc.status_code == 502
    assert exc.snippet == "Bad Gateway"
    assert isinstance(exc.__cause__, httpx.HTTPStatusError)
    assert sleeper.delays == [0.5, 1.0, 2.0]


def test_fetch_exhausted_message_uses_redacted_url():
    client = _client([httpx.ConnectError("down")] * 3)
    retrier = FetchRetrier(
        client=client,
        sleep=lambda _: None,
        redact=lambda url: redact_firms_url(url, "secret-key"),
    )

    with pytest.raises(FetchExhausted) as excinfo:
        retrier.fetch("https://firms.example/csv/secret-key/MODIS_NRT/world/1")

    assert "secret-key" not in str(excinfo.value)
    assert excinfo.value.status_code is None


def test_close_leaves_injected_client_open():
    client = _client([])
    retrier = FetchRetrier(client=client)
    retrier.close()
    assert not client.is_closed


def test_fetch_treats_redirect_as_failure():
    sleeper = SleepRecorder()
    client = _client(
        [
            httpx.Response(302, headers={"Location": "https://firms.example/login"}),
            httpx.Response(302, headers={"Location": "https://firms.example/login"}),
            httpx.Response(302, headers={"Location": "https://firms.example/login"}),
        ]
    )
    retrier = FetchRetrier(client=client, sleep=sleeper)

    with pytest.raises(FetchExhausted) as excinfo:
        retrier.fetch("https://firms.example/csv")

    assert excinfo.value.status_code == 302
    assert sleeper.delays == [0.5, 1.0, 2.0]


def test_fetch_recovers_after_redirect():
    sleeper = SleepRecorder()
    client = _client([httpx.Response(301), httpx.Response(200, text="latitude,longitude\n")])
    retrier = FetchRetrier(client=client, sleep=sleeper)

    assert retrier.fetch("https://firms.example/csv") == "latitude,longitude\n"
    assert sleeper.delays == [0.5]
