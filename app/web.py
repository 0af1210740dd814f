from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from app.api import get_coordinator, get_view_adapter
from models.records import DeviceSeries
from services.coordinator import RefreshCoordinator
from services.view_adapter import ViewAdapter


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))


router = APIRouter(include_in_schema=False)


def _reload_seconds(coordinator: RefreshCoordinator) -> int:
    return max(int(coordinator.interval), 1)


@router.get("/ui", name="ui_index", response_class=HTMLResponse)
async def ui_index(
    request: Request,
    coordinator: RefreshCoordinator = Depends(get_coordinator),
    adapter: ViewAdapter = Depends(get_view_adapter),
) -> HTMLResponse:
    view = adapter.map_view(coordinator.snapshot)
    return templates.TemplateResponse(
        request,
        "ui/index.html",
        {
            "view": view,
            "reload_seconds": _reload_seconds(coordinator),
        },
    )


@router.get("/ui/devices/{device_id}", name="ui_device_detail", response_class=HTMLResponse)
async def ui_device_detail(
    request: Request,
    device_id: int,
    coordinator: RefreshCoordinator = Depends(get_coordinator),
    adapter: ViewAdapter = Depends(get_view_adapter),
) -> HTMLResponse:
    try:
        device = coordinator.catalog.get(device_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Device {device_id} not found.",
        ) from exc

    snapshot = coordinator.snapshot
    series = snapshot.series.get(device.id) or DeviceSeries(device=device)
    return templates.TemplateResponse(
        request,
        "ui/detail.html",
        {
            "marker": adapter.adapt_series(series),
            "snapshot": snapshot,
            "reload_seconds": _reload_seconds(coordinator),
        },
    )
