from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import typer

from app.api import build_snapshot_response
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_marker, render_snapshot
from logging_config import configure_logging
from models.catalog import build_default_catalog
from models.records import DeviceSeries, Snapshot, SnapshotStatus
from services.coordinator import RefreshCoordinator
from services.fetcher import ReadingFetcher
from services.view_adapter import build_default_view_adapter
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for inspecting SenseBox readings.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


def build_local_coordinator() -> RefreshCoordinator:
    settings = get_settings()
    fetcher = ReadingFetcher(base_url=settings.base_url, timeout=settings.fetch_timeout)
    return RefreshCoordinator(
        catalog=build_default_catalog(),
        fetcher=fetcher,
        interval=settings.refresh_interval,
    )


async def _refresh_once(coordinator: RefreshCoordinator) -> Snapshot:
    try:
        return await coordinator.refresh()
    finally:
        await coordinator.aclose()


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Monitor API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for an API response.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("snapshot")
def snapshot_command(ctx: typer.Context) -> None:
    """Show refresh status and the latest reading of every device."""
    state = _get_state(ctx)
    render_snapshot(state.client.get_snapshot())


@app.command("device")
def device_command(
    ctx: typer.Context,
    device_id: int = typer.Argument(..., help="Numeric device identifier."),
) -> None:
    """Show latest values and history summary for one device."""
    state = _get_state(ctx)
    render_marker(state.client.get_device(device_id))


@app.command("once")
def once_command(
    device_id: Optional[int] = typer.Option(
        None,
        "--device",
        "-d",
        help="Also print history for this device.",
    ),
) -> None:
    """Run a single refresh cycle against the remote store, without the API server."""
    configure_logging("WARNING")
    coordinator = build_local_coordinator()
    catalog = coordinator.catalog
    if device_id is not None and device_id not in catalog:
        raise typer.BadParameter(f"Device {device_id} is not in the catalog.")

    snapshot = asyncio.run(_refresh_once(coordinator))
    render_snapshot(build_snapshot_response(snapshot).model_dump(mode="json"))

    if device_id is not None:
        device = catalog.get(device_id)
        series = snapshot.series.get(device_id) or DeviceSeries(device=device)
        marker = build_default_view_adapter().adapt_series(series)
        typer.echo()
        render_marker(marker.model_dump(mode="json"))

    if snapshot.status is SnapshotStatus.error:
        raise typer.Exit(code=1)
