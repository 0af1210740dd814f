from __future__ import annotations

from typing import Any, Dict, Iterable

import typer

NO_DATA = "no data available"


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_snapshot(payload: Dict[str, Any]) -> None:
    echo_heading("Snapshot")
    echo_key_values(
        [
            ("cycle", payload.get("cycle")),
            ("status", payload.get("status")),
            ("updated_at", payload.get("updated_at")),
        ]
    )
    message = payload.get("message")
    if message:
        typer.secho(f"message: {message}", fg=typer.colors.YELLOW)

    typer.echo()
    echo_heading("Devices")
    devices = payload.get("devices") or []
    if not devices:
        typer.echo("No devices configured.")
    for device in devices:
        latest = device.get("latest")
        if latest:
            summary = (
                f"{latest.get('temperature')} °C, {latest.get('humidity')} %, "
                f"{latest.get('illuminance')} lx, {latest.get('light')} V "
                f"at {latest.get('timestamp')}"
            )
        else:
            summary = NO_DATA
        typer.echo(
            f"  - [{device.get('id')}] {device.get('name')} "
            f"({device.get('reading_count')} readings): {summary}"
        )


def render_marker(payload: Dict[str, Any]) -> None:
    popup = payload.get("popup") or {}
    echo_heading(popup.get("title") or payload.get("label") or "Device")
    position = payload.get("position") or []
    if len(position) == 2:
        typer.echo(f"position: {position[0]:.6f}, {position[1]:.6f}")

    if not popup.get("has_data"):
        typer.echo(popup.get("message") or NO_DATA)
        return

    typer.echo(f"last reading: {popup.get('timestamp_text')}")
    typer.echo()
    echo_heading("Latest")
    echo_key_values(
        (metric.get("label"), metric.get("value_text")) for metric in popup.get("metrics") or []
    )

    typer.echo()
    echo_heading("History")
    for chart in popup.get("charts") or []:
        typer.echo(
            f"  - {chart.get('label')}: min {chart.get('min_text')}, max {chart.get('max_text')} "
            f"({chart.get('first_label')} to {chart.get('last_label')}, "
            f"{len(chart.get('points') or [])} points)"
        )
