"""Periodic refresh orchestration across all catalog devices."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from types import MappingProxyType
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from models.catalog import DeviceCatalog, build_default_catalog
from models.records import Device, DeviceSeries, Reading, Snapshot, SnapshotStatus
from services.fetcher import FetchError, ReadingFetcher
from settings import get_settings

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[Snapshot], None]


class Fetcher(Protocol):
    async def fetch(self, device: Device) -> Tuple[Reading, ...]: ...

    async def aclose(self) -> None: ...


@dataclass(frozen=True)
class FetchOutcome:
    """Result of one device fetch within a cycle."""

    device: Device
    readings: Optional[Tuple[Reading, ...]] = None
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RefreshHandle:
    """Handle returned by :meth:`RefreshCoordinator.start`."""

    def __init__(self, coordinator: "RefreshCoordinator", task: asyncio.Task) -> None:
        self._coordinator = coordinator
        self.task = task

    @property
    def cancelled(self) -> bool:
        return not self._coordinator.alive

    def cancel(self) -> None:
        """Stop further ticks and discard the results of any in-flight cycle."""
        self._coordinator.cancel()


class RefreshCoordinator:
    """Owns the published :class:`Snapshot` and the refresh timer.

    Each cycle fetches every device concurrently, waits for all of them, then
    merges the outcomes in a single step. Cycles never overlap: a tick that
    fires while a cycle is still running is skipped.
    """

    def __init__(
        self,
        catalog: DeviceCatalog,
        fetcher: Fetcher,
        interval: float = 60.0,
    ) -> None:
        if interval <= 0:
            raise ValueError("Refresh interval must be positive.")
        self.catalog = catalog
        self.fetcher = fetcher
        self.interval = interval
        self._snapshot = Snapshot(
            cycle=0,
            status=SnapshotStatus.loading,
            series=MappingProxyType(
                {device.id: DeviceSeries(device=device) for device in catalog}
            ),
        )
        self._cycle_count = 0
        self._ever_succeeded = False
        self._alive = True
        self._cycle_task: Optional[asyncio.Task] = None
        self._ticker: Optional[asyncio.Task] = None
        self._listeners: List[SnapshotListener] = []

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def cycle_running(self) -> bool:
        return self._cycle_task is not None and not self._cycle_task.done()

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register ``listener`` for newly published snapshots; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def tick(self) -> Optional[asyncio.Task]:
        """Start a cycle unless one is already running or the coordinator is torn down."""
        if not self._alive:
            return None
        if self.cycle_running:
            logger.info("Skipping tick, previous cycle still running", extra={"cycle": self._cycle_count})
            return None
        self._cycle_count += 1
        self._cycle_task = asyncio.get_running_loop().create_task(
            self._run_cycle(self._cycle_count)
        )
        return self._cycle_task

    async def refresh(self) -> Snapshot:
        """Run a cycle now, or join the one in flight, and return the current snapshot."""
        task = self._cycle_task if self.cycle_running else self.tick()
        if task is not None:
            await task
        return self._snapshot

    def start(self) -> RefreshHandle:
        if not self._alive:
            raise RuntimeError("Coordinator has been torn down.")
        if self._ticker is not None and not self._ticker.done():
            raise RuntimeError("Coordinator is already running.")
        self._ticker = asyncio.get_running_loop().create_task(self._tick_forever())
        return RefreshHandle(self, self._ticker)

    def cancel(self) -> None:
        self._alive = False
        if self._ticker is not None:
            self._ticker.cancel()

    async def aclose(self) -> None:
        """Tear down, wait for outstanding work, and release the fetcher."""
        self.cancel()
        pending = [task for task in (self._ticker, self._cycle_task) if task is not None]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self.fetcher.aclose()

    async def _tick_forever(self) -> None:
        loop = asyncio.get_running_loop()
        next_start = loop.time()
        while self._alive:
            self.tick()
            next_start += self.interval
            await asyncio.sleep(max(0.0, next_start - loop.time()))

    async def _run_cycle(self, cycle: int) -> None:
        started = time.perf_counter()
        outcomes = await self._fetch_all()

        if not self._alive:
            logger.info("Discarding results of cycle after teardown", extra={"cycle": cycle})
            return

        self._merge(cycle, outcomes)
        logger.info(
            "Refresh cycle finished",
            extra={
                "cycle": cycle,
                "status": self._snapshot.status.value,
                "error_count": sum(1 for outcome in outcomes if not outcome.ok),
                "duration_ms": int((time.perf_counter() - started) * 1000),
            },
        )

    async def _fetch_all(self) -> List[FetchOutcome]:
        tasks = [asyncio.ensure_future(self._fetch_one(device)) for device in self.catalog]
        outcomes: List[FetchOutcome] = []
        # Outcomes are collected in completion order so "last failure wins" is well defined.
        for next_done in asyncio.as_completed(tasks):
            outcomes.append(await next_done)
        return outcomes

    async def _fetch_one(self, device: Device) -> FetchOutcome:
        try:
            readings = await self.fetcher.fetch(device)
        except FetchError as exc:
            return FetchOutcome(device=device, error=exc)
        except Exception:  # pragma: no cover - defensive catch-all
            logger.exception("Unexpected fetch failure", extra={"device_id": device.id})
            error = FetchError(device.name, f"Failed to load {device.name}: unexpected error")
            return FetchOutcome(device=device, error=error)
        return FetchOutcome(device=device, readings=tuple(readings))

    def _merge(self, cycle: int, outcomes: List[FetchOutcome]) -> None:
        current = self._snapshot
        series: Dict[int, DeviceSeries] = dict(current.series)
        message: Optional[str] = None
        succeeded = 0

        for outcome in outcomes:
            if outcome.error is not None:
                message = outcome.error.message
                continue
            series[outcome.device.id] = DeviceSeries(
                device=outcome.device, readings=outcome.readings or ()
            )
            succeeded += 1

        if succeeded:
            self._ever_succeeded = True

        if self._ever_succeeded or not outcomes:
            status = SnapshotStatus.ready
        else:
            status = SnapshotStatus.error

        candidate = Snapshot(
            cycle=cycle,
            status=status,
            series=MappingProxyType(series),
            message=message,
            updated_at=datetime.now(timezone.utc),
        )
        if candidate.same_content(current):
            logger.debug("Cycle produced no changes", extra={"cycle": cycle})
            return
        self._publish(candidate)

    def _publish(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:  # noqa: BLE001 - a consumer must not break publication
                logger.exception("Snapshot listener failed", extra={"cycle": snapshot.cycle})


@lru_cache
def build_default_coordinator() -> RefreshCoordinator:
    """Factory that wires the coordinator with the default catalog and remote store."""
    settings = get_settings()
    fetcher = ReadingFetcher(base_url=settings.base_url, timeout=settings.fetch_timeout)
    return RefreshCoordinator(
        catalog=build_default_catalog(),
        fetcher=fetcher,
        interval=settings.refresh_interval,
    )
