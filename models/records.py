"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

# Reading attribute names in display order.
READING_FIELDS: Tuple[str, ...] = ("temperature", "humidity", "illuminance", "light")


@dataclass(frozen=True, slots=True)
class Device:
    """A sensor unit with a fixed identity and position."""

    id: int
    name: str
    position: Tuple[float, float]
    resource: str


@dataclass(frozen=True, slots=True)
class Reading:
    """A single timestamped sample reported by a device."""

    timestamp: datetime
    temperature: float
    humidity: float
    illuminance: float
    light: float


@dataclass(frozen=True, slots=True)
class DeviceSeries:
    """All readings returned for a device by its latest successful fetch."""

    device: Device
    readings: Tuple[Reading, ...] = ()


class SnapshotStatus(str, Enum):
    """Global refresh state exposed to consumers."""

    loading = "loading"
    ready = "ready"
    error = "error"


@dataclass(frozen=True)
class Snapshot:
    """Consistent view across all devices after a refresh cycle.

    ``series`` always holds an entry for every catalog device; devices that
    never produced data map to an empty series.
    """

    cycle: int
    status: SnapshotStatus
    series: Mapping[int, DeviceSeries] = field(default_factory=lambda: MappingProxyType({}))
    message: Optional[str] = None
    updated_at: Optional[datetime] = None

    def same_content(self, other: "Snapshot") -> bool:
        """Compare everything consumers render, ignoring cycle bookkeeping."""
        return (
            self.status is other.status
            and self.message == other.message
            and dict(self.series) == dict(other.series)
        )
