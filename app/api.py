"""HTTP route definitions for the service."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.schemas import DeviceSummary, MapView, MarkerRecord, ReadingModel, SnapshotResponse
from models.records import DeviceSeries, Snapshot
from services.coordinator import RefreshCoordinator, build_default_coordinator
from services.view_adapter import ViewAdapter, build_default_view_adapter

router = APIRouter()


def get_coordinator() -> RefreshCoordinator:
    return build_default_coordinator()


def get_view_adapter() -> ViewAdapter:
    return build_default_view_adapter()


def _summarize(series: DeviceSeries) -> DeviceSummary:
    latest = series.readings[-1] if series.readings else None
    return DeviceSummary(
        id=series.device.id,
        name=series.device.name,
        position=series.device.position,
        reading_count=len(series.readings),
        latest=ReadingModel.model_validate(latest, from_attributes=True) if latest else None,
    )


def build_snapshot_response(snapshot: Snapshot) -> SnapshotResponse:
    return SnapshotResponse(
        cycle=snapshot.cycle,
        status=snapshot.status,
        message=snapshot.message,
        updated_at=snapshot.updated_at,
        devices=[_summarize(series) for series in snapshot.series.values()],
    )


@router.get(
    "/snapshot",
    response_model=SnapshotResponse,
    summary="Current refresh status and latest reading per device.",
)
async def get_snapshot(
    coordinator: RefreshCoordinator = Depends(get_coordinator),
) -> SnapshotResponse:
    return build_snapshot_response(coordinator.snapshot)


@router.get(
    "/map",
    response_model=MapView,
    summary="Render-ready markers for every device.",
)
async def get_map(
    coordinator: RefreshCoordinator = Depends(get_coordinator),
    adapter: ViewAdapter = Depends(get_view_adapter),
) -> MapView:
    return adapter.map_view(coordinator.snapshot)


@router.get(
    "/devices/{device_id}",
    response_model=MarkerRecord,
    summary="Popup payload and history charts for one device.",
)
async def get_device(
    device_id: int,
    coordinator: RefreshCoordinator = Depends(get_coordinator),
    adapter: ViewAdapter = Depends(get_view_adapter),
) -> MarkerRecord:
    try:
        device = coordinator.catalog.get(device_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Device {device_id} not found.",
        ) from exc
    series = coordinator.snapshot.series.get(device.id) or DeviceSeries(device=device)
    return adapter.adapt_series(series)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /map for device data and /ui for the dashboard."}
