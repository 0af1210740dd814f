"""Bounded-window history summaries for inline charts."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from models.records import READING_FIELDS, Reading

DEFAULT_WINDOW = 20

# Vertical position used when a window has no value range.
FLAT_Y = 0.5


@dataclass(frozen=True)
class FieldRange:
    min: float
    max: float


@dataclass(frozen=True)
class PlotPoint:
    """Chart coordinate in the unit square; ``y`` grows from minimum (0) to maximum (1)."""

    x: float
    y: float


@dataclass(frozen=True)
class HistoryView:
    """Derived view of a device series. Recomputed for every render."""

    latest: Optional[Reading] = None
    window: Tuple[Reading, ...] = ()
    per_field: Dict[str, FieldRange] = field(default_factory=dict)
    points: Dict[str, Tuple[PlotPoint, ...]] = field(default_factory=dict)


def _finite(values: Iterable[float]) -> List[float]:
    return [value for value in values if _is_finite(value)]


def _is_finite(value: float) -> bool:
    try:
        return math.isfinite(value)
    except (TypeError, OverflowError):
        return False


def value_range(values: Sequence[float]) -> Optional[FieldRange]:
    """Min/max over the finite values, or ``None`` when there are none."""
    finite = _finite(values)
    if not finite:
        return None
    return FieldRange(min=min(finite), max=max(finite))


def normalize(values: Sequence[float]) -> Tuple[PlotPoint, ...]:
    """Map a value sequence onto unit-square plot coordinates.

    ``x`` is ``i / max(N - 1, 1)``. ``y`` is ``(v - min) / (max - min)`` when the
    range is non-empty and :data:`FLAT_Y` otherwise, so a single point sits at
    the vertical midpoint. Non-finite values keep their slot on the x axis but
    produce no point.
    """
    span = max(len(values) - 1, 1)
    bounds = value_range(values)
    if bounds is None:
        return ()

    spread = bounds.max - bounds.min
    points: List[PlotPoint] = []
    for index, value in enumerate(values):
        if not _is_finite(value):
            continue
        y = (value - bounds.min) / spread if spread > 0 else FLAT_Y
        points.append(PlotPoint(x=index / span, y=y))
    return tuple(points)


class HistoryProjector:
    """Pure projection component that can be unit tested in isolation."""

    def __init__(self, fields: Sequence[str] = READING_FIELDS) -> None:
        self.fields = tuple(fields)

    def project(self, series: Sequence[Reading], window: int = DEFAULT_WINDOW) -> HistoryView:
        if window < 1:
            raise ValueError("History window must contain at least one reading.")

        readings = tuple(series)
        if not readings:
            return HistoryView()

        recent = readings[-window:]
        per_field: Dict[str, FieldRange] = {}
        points: Dict[str, Tuple[PlotPoint, ...]] = {}
        for name in self.fields:
            values = [getattr(reading, name) for reading in recent]
            bounds = value_range(values)
            if bounds is None:
                continue
            per_field[name] = bounds
            points[name] = normalize(values)

        return HistoryView(
            latest=readings[-1],
            window=recent,
            per_field=per_field,
            points=points,
        )
