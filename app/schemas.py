"""Pydantic schemas for the HTTP API layer and render-ready records."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from models.records import SnapshotStatus

NO_DATA = "no data available"

LatLng = Tuple[float, float]

# Readings are passed through as received; large JSON integers do not fit a float.
Number = Union[int, float]


class ReadingModel(BaseModel):
    """Latest reading of a device as reported by the remote store."""

    timestamp: datetime
    temperature: Number
    humidity: Number
    illuminance: Number
    light: Number


class DeviceSummary(BaseModel):
    id: int
    name: str
    position: LatLng
    reading_count: int = Field(..., ge=0)
    latest: Optional[ReadingModel] = None


class SnapshotResponse(BaseModel):
    """Global refresh state plus a per-device summary."""

    cycle: int = Field(..., ge=0)
    status: SnapshotStatus
    message: Optional[str] = None
    updated_at: Optional[datetime] = None
    devices: List[DeviceSummary] = Field(default_factory=list)


class MarkerIcon(BaseModel):
    icon_url: str
    icon_retina_url: str
    shadow_url: str
    icon_size: Tuple[int, int]
    icon_anchor: Tuple[int, int]
    popup_anchor: Tuple[int, int]
    tooltip_anchor: Tuple[int, int]
    shadow_size: Tuple[int, int]


class ChartPoint(BaseModel):
    x: float
    y: float


class Metric(BaseModel):
    field: str
    label: str
    value_text: str


class ChartRecord(BaseModel):
    """Inline line chart for one reading field over the history window."""

    field: str
    label: str
    color: str
    gradient_id: str = Field(..., description="Stable identifier derived from device id and field.")
    latest_text: str
    min_text: str
    max_text: str
    first_label: str = ""
    last_label: str = ""
    width: int
    height: int
    points: List[ChartPoint] = Field(default_factory=list)
    polyline: str = Field("", description="SVG polyline points in chart pixel space.")


class PopupPayload(BaseModel):
    title: str
    has_data: bool
    message: Optional[str] = None
    timestamp_text: Optional[str] = None
    metrics: List[Metric] = Field(default_factory=list)
    charts: List[ChartRecord] = Field(default_factory=list)


class MarkerRecord(BaseModel):
    """Everything the map surface needs to draw one device."""

    id: int
    position: LatLng
    label: str
    icon: MarkerIcon
    popup: PopupPayload


class MapView(BaseModel):
    center: LatLng
    zoom: int
    bounds: Tuple[LatLng, LatLng]
    cycle: int
    status: SnapshotStatus
    message: Optional[str] = None
    markers: List[MarkerRecord] = Field(default_factory=list)
