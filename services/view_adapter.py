"""Mapping of snapshots onto render-ready marker records."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Optional, Sequence, Tuple

from app.schemas import (
    NO_DATA,
    ChartPoint,
    ChartRecord,
    MapView,
    MarkerIcon,
    MarkerRecord,
    Metric,
    PopupPayload,
)
from models.catalog import DeviceCatalog, build_default_catalog
from models.records import Device, DeviceSeries, Snapshot
from services.projector import DEFAULT_WINDOW, HistoryProjector, HistoryView, PlotPoint
from settings import get_settings

_LEAFLET_IMAGES = "https://unpkg.com/leaflet@1.9.4/dist/images"

TIMESTAMP_FORMAT = "%d.%m.%Y %H:%M:%S"
AXIS_LABEL_FORMAT = "%H:%M"


@dataclass(frozen=True)
class MarkerStyle:
    """Icon configuration handed to the map surface for every marker."""

    icon_url: str = f"{_LEAFLET_IMAGES}/marker-icon.png"
    icon_retina_url: str = f"{_LEAFLET_IMAGES}/marker-icon-2x.png"
    shadow_url: str = f"{_LEAFLET_IMAGES}/marker-shadow.png"
    icon_size: Tuple[int, int] = (25, 41)
    icon_anchor: Tuple[int, int] = (12, 41)
    popup_anchor: Tuple[int, int] = (1, -34)
    tooltip_anchor: Tuple[int, int] = (16, -28)
    shadow_size: Tuple[int, int] = (41, 41)

    def to_icon(self) -> MarkerIcon:
        return MarkerIcon(
            icon_url=self.icon_url,
            icon_retina_url=self.icon_retina_url,
            shadow_url=self.shadow_url,
            icon_size=self.icon_size,
            icon_anchor=self.icon_anchor,
            popup_anchor=self.popup_anchor,
            tooltip_anchor=self.tooltip_anchor,
            shadow_size=self.shadow_size,
        )


@dataclass(frozen=True)
class ChartStyle:
    width: int = 280
    height: int = 120


@dataclass(frozen=True)
class FieldSpec:
    name: str
    label: str
    unit: str
    decimals: int
    color: str


FIELD_SPECS: Tuple[FieldSpec, ...] = (
    FieldSpec("temperature", "Temperature", "°C", 1, "#ef4444"),
    FieldSpec("humidity", "Humidity", "%", 1, "#3b82f6"),
    FieldSpec("illuminance", "Illuminance", "lx", 0, "#22c55e"),
    FieldSpec("light", "Light", "V", 2, "#f59e0b"),
)


def format_value(value: Optional[float], spec: FieldSpec) -> str:
    """Render a measurement with the field's precision, or :data:`NO_DATA`."""
    if value is None or isinstance(value, bool):
        return NO_DATA
    try:
        if not math.isfinite(value):
            return NO_DATA
        return f"{value:.{spec.decimals}f} {spec.unit}"
    except (TypeError, ValueError, OverflowError):
        return NO_DATA


def format_timestamp(moment: Optional[datetime], fmt: str = TIMESTAMP_FORMAT) -> str:
    if moment is None:
        return ""
    return moment.strftime(fmt)


def gradient_id(device_id: int, field_name: str) -> str:
    return f"gradient-{device_id}-{field_name}"


def polyline(points: Sequence[PlotPoint], style: ChartStyle) -> str:
    """SVG ``points`` attribute; the maximum is drawn at the top edge."""
    return " ".join(
        f"{point.x * style.width:.2f},{style.height - point.y * style.height:.2f}"
        for point in points
    )


class ViewAdapter:
    """Builds marker records from snapshots for the map surface.

    Style settings are explicit constructor arguments, and :meth:`map_view`
    returns the very same object for the same snapshot reference so consumers
    can diff by identity.
    """

    def __init__(
        self,
        catalog: DeviceCatalog,
        center: Tuple[float, float],
        zoom: int,
        window: int = DEFAULT_WINDOW,
        marker_style: Optional[MarkerStyle] = None,
        chart_style: Optional[ChartStyle] = None,
        projector: Optional[HistoryProjector] = None,
        field_specs: Sequence[FieldSpec] = FIELD_SPECS,
    ) -> None:
        self.catalog = catalog
        self.center = center
        self.zoom = zoom
        self.window = window
        self.marker_style = marker_style or MarkerStyle()
        self.chart_style = chart_style or ChartStyle()
        self.projector = projector or HistoryProjector(fields=[spec.name for spec in field_specs])
        self.field_specs = tuple(field_specs)
        self._last_snapshot: Optional[Snapshot] = None
        self._last_view: Optional[MapView] = None

    def adapt(self, device: Device, view: HistoryView) -> MarkerRecord:
        return MarkerRecord(
            id=device.id,
            position=device.position,
            label=device.name,
            icon=self.marker_style.to_icon(),
            popup=self._popup(device, view),
        )

    def adapt_series(self, series: DeviceSeries) -> MarkerRecord:
        view = self.projector.project(series.readings, self.window)
        return self.adapt(series.device, view)

    def map_view(self, snapshot: Snapshot) -> MapView:
        if snapshot is self._last_snapshot and self._last_view is not None:
            return self._last_view

        markers = []
        for device in self.catalog:
            series = snapshot.series.get(device.id) or DeviceSeries(device=device)
            markers.append(self.adapt_series(series))

        view = MapView(
            center=self.center,
            zoom=self.zoom,
            bounds=self.catalog.bounds(),
            cycle=snapshot.cycle,
            status=snapshot.status,
            message=snapshot.message,
            markers=markers,
        )
        self._last_snapshot = snapshot
        self._last_view = view
        return view

    def _popup(self, device: Device, view: HistoryView) -> PopupPayload:
        latest = view.latest
        if latest is None:
            return PopupPayload(title=device.name, has_data=False, message=NO_DATA)

        metrics = [
            Metric(
                field=spec.name,
                label=spec.label,
                value_text=format_value(getattr(latest, spec.name, None), spec),
            )
            for spec in self.field_specs
        ]
        charts = [
            chart
            for chart in (self._chart(device, view, spec) for spec in self.field_specs)
            if chart is not None
        ]
        return PopupPayload(
            title=device.name,
            has_data=True,
            timestamp_text=format_timestamp(latest.timestamp),
            metrics=metrics,
            charts=charts,
        )

    def _chart(self, device: Device, view: HistoryView, spec: FieldSpec) -> Optional[ChartRecord]:
        bounds = view.per_field.get(spec.name)
        points = view.points.get(spec.name, ())
        if bounds is None or not points:
            return None

        latest_value = getattr(view.window[-1], spec.name, None)
        return ChartRecord(
            field=spec.name,
            label=spec.label,
            color=spec.color,
            gradient_id=gradient_id(device.id, spec.name),
            latest_text=format_value(latest_value, spec),
            min_text=format_value(bounds.min, spec),
            max_text=format_value(bounds.max, spec),
            first_label=format_timestamp(view.window[0].timestamp, AXIS_LABEL_FORMAT),
            last_label=format_timestamp(view.window[-1].timestamp, AXIS_LABEL_FORMAT),
            width=self.chart_style.width,
            height=self.chart_style.height,
            points=[ChartPoint(x=point.x, y=point.y) for point in points],
            polyline=polyline(points, self.chart_style),
        )


@lru_cache
def build_default_view_adapter() -> ViewAdapter:
    settings = get_settings()
    return ViewAdapter(
        catalog=build_default_catalog(),
        center=settings.map_center,
        zoom=settings.map_zoom,
        window=settings.history_window,
    )
