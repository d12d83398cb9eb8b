"""Threshold, unit conversion and de-duplication of matched points."""

from __future__ import annotations

from typing import Iterable

from wxextract.records import PointRecord

MM_TO_INCHES = 1.0 / 25.4
DEFAULT_COORDINATE_PRECISION = 4


def aggregate(
    points: Iterable[PointRecord],
    min_value: float,
    *,
    scale: float = 1.0,
    coordinate_precision: int = DEFAULT_COORDINATE_PRECISION,
) -> list[PointRecord]:
    """
    Convert units, apply the threshold and collapse coincident points.

    Values are multiplied by ``scale`` before comparison with ``min_value``.
    Points whose coordinates round to the same cell keep the larger value.
    The result is sorted by value descending, then latitude descending, then
    longitude ascending.
    """

    best: dict[tuple[float, float], PointRecord] = {}
    for point in points:
        value = point.value * scale
        if value < min_value:
            continue
        key = (
            round(point.latitude, coordinate_precision),
            round(point.longitude, coordinate_precision),
        )
        current = best.get(key)
        if current is None or value > current.value:
            best[key] = PointRecord(point.latitude, point.longitude, value)
    return sorted(best.values(), key=lambda p: (-p.value, -p.latitude, p.longitude))
