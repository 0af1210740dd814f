from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Sequence, Union

import pytest

from models.catalog import DEFAULT_DEVICES, DeviceCatalog
from models.records import Device, Reading
from services.fetcher import FetchError

_BASE_TIME = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


def build_reading(
    minute: int = 0,
    temperature: float = 20.0,
    humidity: float = 50.0,
    illuminance: float = 100,
    light: float = 1.5,
) -> Reading:
    return Reading(
        timestamp=_BASE_TIME + timedelta(minutes=minute),
        temperature=temperature,
        humidity=humidity,
        illuminance=illuminance,
        light=light,
    )


class StubFetcher:
    """In-memory stand-in for ReadingFetcher with per-device scripted outcomes."""

    def __init__(self) -> None:
        self.responses: Dict[int, Union[Sequence[Reading], FetchError]] = {}
        self.delays: Dict[int, float] = {}
        self.gates: Dict[int, asyncio.Event] = {}
        self.calls: List[int] = []
        self.closed = False

    def succeed(self, device_id: int, readings: Sequence[Reading]) -> None:
        self.responses[device_id] = tuple(readings)

    def fail(self, device: Device, cause: str = "HTTP 500") -> FetchError:
        error = FetchError(device.name, f"Failed to load {device.name}: {cause}")
        self.responses[device.id] = error
        return error

    async def fetch(self, device: Device) -> Sequence[Reading]:
        self.calls.append(device.id)
        gate = self.gates.get(device.id)
        if gate is not None:
            await gate.wait()
        delay = self.delays.get(device.id)
        if delay:
            await asyncio.sleep(delay)
        response = self.responses.get(device.id, ())
        if isinstance(response, FetchError):
            raise response
        return tuple(response)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture()
def make_reading() -> Callable[..., Reading]:
    return build_reading


@pytest.fixture()
def stub_fetcher() -> StubFetcher:
    return StubFetcher()


@pytest.fixture()
def catalog() -> DeviceCatalog:
    return DeviceCatalog(DEFAULT_DEVICES)
