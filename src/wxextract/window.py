"""Longitude-convention detection and window membership tests."""

from __future__ import annotations

import enum
import itertools
import logging
from typing import Iterable, Iterator

from wxextract.records import PointRecord, SpatialWindow

LOGGER = logging.getLogger("wxextract.window")

DEFAULT_SAMPLE_SIZE = 50
COORD_EPSILON = 1e-6


class LongitudeConvention(str, enum.Enum):
    SIGNED_180 = "signed180"
    UNSIGNED_360 = "unsigned360"


def infer_convention(longitudes: Iterable[float]) -> LongitudeConvention:
    """Classify sampled longitudes: any value above 180 means 0-360."""

    if any(lon > 180.0 for lon in longitudes):
        return LongitudeConvention.UNSIGNED_360
    return LongitudeConvention.SIGNED_180


def classify_stream(
    records: Iterable[PointRecord],
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> tuple[LongitudeConvention, Iterator[PointRecord]]:
    """
    Decide a stream's convention from its first ``sample_size`` records.

    Returns the convention and an iterator that replays the sample before the
    rest of the stream, so no record is lost to classification.
    """

    iterator = iter(records)
    sample = list(itertools.islice(iterator, sample_size))
    convention = infer_convention(record.longitude for record in sample)
    LOGGER.debug("Classified stream as %s from %d samples", convention.value, len(sample))
    return convention, itertools.chain(sample, iterator)


def to_signed(longitude: float) -> float:
    return longitude - 360.0 if longitude > 180.0 else longitude


class WindowMatcher:
    """Membership test for one window in one stream's longitude convention."""

    def __init__(self, window: SpatialWindow, convention: LongitudeConvention) -> None:
        self.window = window
        self.convention = convention
        self.south = window.south - COORD_EPSILON
        self.north = window.north + COORD_EPSILON
        self.intervals = _intervals(window, convention)

    def contains(self, latitude: float, longitude: float) -> bool:
        if not self.south <= latitude <= self.north:
            return False
        for low, high in self.intervals:
            if low <= longitude <= high:
                return True
        return False

    def is_south_of(self, latitude: float) -> bool:
        return latitude < self.south

    def to_signed(self, record: PointRecord) -> PointRecord:
        """Return ``record`` with its longitude in Signed180."""

        if self.convention is LongitudeConvention.SIGNED_180:
            return record
        return PointRecord(record.latitude, to_signed(record.longitude), record.value)


def _intervals(
    window: SpatialWindow,
    convention: LongitudeConvention,
) -> tuple[tuple[float, float], ...]:
    if window.spans_globe:
        if convention is LongitudeConvention.UNSIGNED_360:
            return ((0.0, 360.0),)
        return ((-180.0, 180.0),)
    canonical = window.canonical()
    if canonical.west <= canonical.east:
        signed = [(canonical.west, canonical.east)]
    else:
        # Crosses the antimeridian.
        signed = [(canonical.west, 180.0), (-180.0, canonical.east)]

    if convention is LongitudeConvention.SIGNED_180:
        pieces = signed
    else:
        pieces = []
        for low, high in signed:
            if low >= 0.0:
                pieces.append((low, high))
            elif high < 0.0:
                pieces.append((low + 360.0, high + 360.0))
            else:
                # Crosses the 0/360 seam of the unsigned convention.
                pieces.append((low + 360.0, 360.0))
                pieces.append((0.0, high))
    return tuple(
        (low - COORD_EPSILON, high + COORD_EPSILON) for low, high in _merge(pieces)
    )


def _merge(pieces: list[tuple[float, float]]) -> list[tuple[float, float]]:
    merged: list[tuple[float, float]] = []
    for low, high in sorted(pieces):
        if merged and low <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], high))
        else:
            merged.append((low, high))
    return merged
