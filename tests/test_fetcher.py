from __future__ import annotations

import asyncio
import json
import time
from datetime import datetime, timezone
from typing import Any, Callable, List

import httpx
import pytest

from models.catalog import DEFAULT_DEVICES
from services.fetcher import (
    FetchError,
    ParseError,
    ReadingFetcher,
    ShapeError,
    TransportError,
)

BASE_URL = "https://store.example.test/public"
DEVICE = DEFAULT_DEVICES[2]

SAMPLE = [
    {"ts": "2024-01-01T10:00:00Z", "temperature": 20.0, "humidity": 45.5, "illu": 120, "light": 1.25},
    {"ts": "2024-01-01T10:01:00Z", "temperature": 22.0, "humidity": 46.0, "illu": 130, "light": 1.5},
]


def _fetch(handler: Callable[[httpx.Request], httpx.Response], timeout: float = 10.0) -> Any:
    async def run() -> Any:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        fetcher = ReadingFetcher(base_url=BASE_URL, timeout=timeout, client=client)
        try:
            return await fetcher.fetch(DEVICE)
        finally:
            await fetcher.aclose()
            await client.aclose()

    return asyncio.run(run())


def _json_handler(body: Any, status_code: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=body)

    return handler


def test_fetch_decodes_reading_series() -> None:
    requests: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=SAMPLE)

    readings = _fetch(handler)

    assert len(readings) == 2
    first, last = readings
    assert first.timestamp == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert last.temperature == 22.0
    assert last.humidity == 46.0
    assert last.illuminance == 130
    assert last.light == 1.5

    (request,) = requests
    assert request.method == "GET"
    assert str(request.url) == f"{BASE_URL}/sensebox2.json"
    assert request.url.query == b""
    assert request.headers["Cache-Control"] == "no-cache, no-store"
    assert request.headers["Pragma"] == "no-cache"
    assert "Authorization" not in request.headers


def test_fetch_accepts_empty_array() -> None:
    assert _fetch(_json_handler([])) == ()


def test_fetch_keeps_source_order_and_passes_values_through() -> None:
    body = [
        {"ts": "2024-01-01T10:05:00+02:00", "temperature": -273.0, "humidity": 250.0, "illu": 0, "light": 9.9},
        {"ts": "2024-01-01T07:00:00", "temperature": 1e6, "humidity": -1, "illu": 5.5, "light": 0},
    ]

    readings = _fetch(_json_handler(body))

    assert [reading.timestamp.hour for reading in readings] == [8, 7]
    assert readings[0].temperature == -273.0
    assert readings[1].illuminance == 5.5
    assert readings[1].timestamp.tzinfo is timezone.utc


def test_server_error_becomes_fetch_error() -> None:
    with pytest.raises(FetchError) as excinfo:
        _fetch(_json_handler({"detail": "boom"}, status_code=500))

    error = excinfo.value
    assert error.device_name == DEVICE.name
    assert error.message == "Failed to load SenseBox 2: HTTP 500"
    assert isinstance(error.__cause__, TransportError)


def test_timeout_becomes_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(FetchError) as excinfo:
        _fetch(handler)

    assert "timed out" in excinfo.value.message
    assert isinstance(excinfo.value.__cause__, TransportError)


class _TrickleStream(httpx.AsyncByteStream):
    """Body that keeps every read short but never finishes in time."""

    async def __aiter__(self):
        yield b"["
        for _ in range(50):
            await asyncio.sleep(0.05)
            yield b" "
        yield b"]"


def test_slow_body_is_bounded_by_overall_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, stream=_TrickleStream())

    started = time.monotonic()
    with pytest.raises(FetchError) as excinfo:
        _fetch(handler, timeout=0.2)

    assert time.monotonic() - started < 2.0
    assert excinfo.value.message == "Failed to load SenseBox 2: request timed out"
    assert isinstance(excinfo.value.__cause__, TransportError)


def test_connection_error_becomes_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(FetchError) as excinfo:
        _fetch(handler)

    assert isinstance(excinfo.value.__cause__, TransportError)


@pytest.mark.parametrize(
    "body",
    [
        {"ts": "2024-01-01T10:00:00Z"},
        [1, 2, 3],
        [{"temperature": 1.0, "humidity": 1.0, "illu": 1, "light": 1.0}],
        [{"ts": "2024-01-01T10:00:00Z", "temperature": 1.0, "humidity": 1.0, "light": 1.0}],
        [{"ts": "2024-01-01T10:00:00Z", "temperature": "warm", "humidity": 1.0, "illu": 1, "light": 1.0}],
        [{"ts": "2024-01-01T10:00:00Z", "temperature": None, "humidity": 1.0, "illu": 1, "light": 1.0}],
        [{"ts": "2024-01-01T10:00:00Z", "temperature": True, "humidity": 1.0, "illu": 1, "light": 1.0}],
    ],
)
def test_malformed_payload_is_shape_error(body: Any) -> None:
    with pytest.raises(FetchError) as excinfo:
        _fetch(_json_handler(body))

    assert isinstance(excinfo.value.__cause__, ShapeError)


def test_invalid_json_is_shape_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"[{not json", headers={"Content-Type": "application/json"})

    with pytest.raises(FetchError) as excinfo:
        _fetch(handler)

    assert isinstance(excinfo.value.__cause__, ShapeError)


@pytest.mark.parametrize("ts", ["yesterday", "", "2024-13-45T99:00:00Z", 1704103200])
def test_unparsable_timestamp_is_parse_error(ts: Any) -> None:
    body = [{"ts": ts, "temperature": 1.0, "humidity": 1.0, "illu": 1, "light": 1.0}]

    with pytest.raises(FetchError) as excinfo:
        _fetch(_json_handler(body))

    assert isinstance(excinfo.value.__cause__, ParseError)


def test_nan_values_are_not_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.dumps([{"ts": "2024-01-01T10:00:00Z", "temperature": float("nan"), "humidity": 1.0, "illu": 1, "light": 1.0}])
        return httpx.Response(200, content=body.encode(), headers={"Content-Type": "application/json"})

    (reading,) = _fetch(handler)

    assert reading.temperature != reading.temperature


def test_injected_client_is_not_closed() -> None:
    async def run() -> bool:
        client = httpx.AsyncClient(transport=httpx.MockTransport(_json_handler([])))
        fetcher = ReadingFetcher(base_url=BASE_URL + "/", client=client)
        await fetcher.aclose()
        closed = client.is_closed
        await client.aclose()
        return closed

    assert asyncio.run(run()) is False


def test_url_joins_base_and_resource() -> None:
    fetcher = ReadingFetcher(base_url=BASE_URL + "/", client=httpx.AsyncClient())

    assert fetcher.url_for(DEVICE) == f"{BASE_URL}/sensebox2.json"
