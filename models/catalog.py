"""Static catalog of the deployed SenseBox devices."""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, Iterable, Iterator, List, Tuple

from models.records import Device

DEFAULT_DEVICES: Tuple[Device, ...] = (
    Device(0, "SenseBox 0", (51.25249146683472, 7.128714956019335), "sensebox0.json"),
    Device(1, "SenseBox 1", (51.25234545733288, 7.128517708781204), "sensebox1.json"),
    Device(2, "SenseBox 2", (51.25247128668728, 7.128386842825138), "sensebox2.json"),
    Device(3, "SenseBox 3", (51.252534201235335, 7.1285670205907365), "sensebox3.json"),
    Device(4, "SenseBox 4", (51.2523240900498, 7.1288515117995805), "sensebox4.json"),
)


class DeviceCatalog:
    """Read-only, ordered collection of devices keyed by id."""

    def __init__(self, devices: Iterable[Device]) -> None:
        self._devices: Dict[int, Device] = {}
        for device in devices:
            if device.id in self._devices:
                raise ValueError(f"Duplicate device id {device.id} in catalog.")
            self._devices[device.id] = device

    def __iter__(self) -> Iterator[Device]:
        return iter(self._devices.values())

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._devices

    def get(self, device_id: int) -> Device:
        try:
            return self._devices[device_id]
        except KeyError:
            raise KeyError(f"Device {device_id!r} is not in the catalog.") from None

    def positions(self) -> List[Tuple[float, float]]:
        return [device.position for device in self]

    def bounds(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """Return ``((south, west), (north, east))`` enclosing every device."""
        positions = self.positions()
        if not positions:
            raise ValueError("Cannot compute bounds of an empty catalog.")
        lats = [lat for lat, _ in positions]
        lngs = [lng for _, lng in positions]
        return (min(lats), min(lngs)), (max(lats), max(lngs))


@lru_cache
def build_default_catalog() -> DeviceCatalog:
    return DeviceCatalog(DEFAULT_DEVICES)
