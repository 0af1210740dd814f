"""Retrieval of per-device reading series from the remote store."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import httpx

from models.records import Device, Reading

logger = logging.getLogger(__name__)

# Requests must never be answered from an intermediate cache.
NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store",
    "Pragma": "no-cache",
}

# Wire key -> Reading attribute.
_NUMERIC_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("temperature", "temperature"),
    ("humidity", "humidity"),
    ("illu", "illuminance"),
    ("light", "light"),
)


class ReadingError(Exception):
    """Base class for problems retrieving or decoding a device's readings."""


class TransportError(ReadingError):
    """The request failed, timed out, or returned a non-success status."""


class ShapeError(ReadingError):
    """The body is not a JSON array of well-formed reading objects."""


class ParseError(ReadingError):
    """A reading carries a timestamp that cannot be parsed."""


class FetchError(Exception):
    """Per-device failure raised by :meth:`ReadingFetcher.fetch`."""

    def __init__(self, device_name: str, message: str) -> None:
        super().__init__(message)
        self.device_name = device_name
        self.message = message


class ReadingFetcher:
    """Performs one uncached GET per device and decodes the reading series."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def url_for(self, device: Device) -> str:
        return f"{self.base_url}/{device.resource.lstrip('/')}"

    async def fetch(self, device: Device) -> Tuple[Reading, ...]:
        """Return the device's full reading series or raise :class:`FetchError`."""
        started = time.perf_counter()
        try:
            payload = await self._get_json(device)
            readings = self.parse_readings(payload)
        except ReadingError as exc:
            message = f"Failed to load {device.name}: {exc}"
            logger.warning(
                "Fetch failed",
                extra={
                    "device_id": device.id,
                    "device_name": device.name,
                    "reason": type(exc).__name__,
                },
            )
            raise FetchError(device.name, message) from exc

        logger.debug(
            "Fetched readings",
            extra={
                "device_id": device.id,
                "reading_count": len(readings),
                "duration_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return readings

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get_json(self, device: Device) -> Any:
        url = self.url_for(device)
        try:
            # httpx applies its timeout per phase; bound the whole request as well.
            response = await asyncio.wait_for(
                self._client.get(url, headers=NO_CACHE_HEADERS), self.timeout
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            raise TransportError("request timed out") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"request failed ({exc.__class__.__name__})") from exc

        if not response.is_success:
            raise TransportError(f"HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise ShapeError("response body is not valid JSON") from exc

    @classmethod
    def parse_readings(cls, payload: Any) -> Tuple[Reading, ...]:
        if not isinstance(payload, list):
            raise ShapeError("expected a JSON array of readings")
        return tuple(cls._parse_reading(index, item) for index, item in enumerate(payload))

    @classmethod
    def _parse_reading(cls, index: int, item: Any) -> Reading:
        if not isinstance(item, dict):
            raise ShapeError(f"reading {index} is not an object")
        if "ts" not in item:
            raise ShapeError(f"reading {index} is missing 'ts'")

        values: Dict[str, float] = {}
        for wire_key, attribute in _NUMERIC_FIELDS:
            if wire_key not in item:
                raise ShapeError(f"reading {index} is missing {wire_key!r}")
            raw = item[wire_key]
            # bool is an int subclass; JSON true/false is not a measurement.
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                raise ShapeError(f"reading {index} has non-numeric {wire_key!r}")
            values[attribute] = raw

        try:
            timestamp = cls._parse_timestamp(item["ts"])
        except ValueError as exc:
            raise ParseError(f"reading {index} has invalid timestamp {item['ts']!r}") from exc

        return Reading(timestamp=timestamp, **values)

    @staticmethod
    def _parse_timestamp(value: Any) -> datetime:
        if not isinstance(value, str):
            raise ValueError("Timestamp is not a string.")
        candidate = value.strip()
        if not candidate:
            raise ValueError("Timestamp is empty.")

        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"

        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError as exc:
            raise ValueError("Invalid timestamp format") from exc

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)

        return parsed.astimezone(timezone.utc)
