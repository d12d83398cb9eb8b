"""Value types shared by every extraction component."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field, replace
from typing import Union

from wxextract.errors import AllStrategiesExhausted, DecodeUnavailable


@dataclass(frozen=True)
class PointRecord:
    """One decoded grid point."""

    latitude: float
    longitude: float
    value: float


def fold_signed(longitude: float) -> float:
    """Fold a longitude into the [-180, 180] range."""

    if -180.0 <= longitude <= 180.0:
        return longitude
    folded = math.fmod(longitude + 180.0, 360.0)
    if folded < 0:
        folded += 360.0
    return folded - 180.0


@dataclass(frozen=True)
class SpatialWindow:
    """Target bounding box in degrees.

    ``west``/``east`` may be expressed in either longitude convention and
    may cross the antimeridian (``west > east`` once folded).
    """

    south: float
    north: float
    west: float
    east: float

    def __post_init__(self) -> None:
        for name in ("south", "north", "west", "east"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"Window {name} must be finite")
        if not self.south < self.north:
            raise ValueError(f"Window south ({self.south}) must be below north ({self.north})")
        if self.south < -90.0 or self.north > 90.0:
            raise ValueError("Window latitudes must lie within [-90, 90]")

    @property
    def spans_globe(self) -> bool:
        return abs(self.east - self.west) >= 360.0

    def canonical(self) -> "SpatialWindow":
        """Return the window with west/east folded into Signed180."""

        if self.spans_globe:
            return replace(self, west=-180.0, east=180.0)
        return replace(self, west=fold_signed(self.west), east=fold_signed(self.east))

    @classmethod
    def from_bounds(cls, bounds: dict[str, float]) -> "SpatialWindow":
        return cls(
            south=float(bounds["south"]),
            north=float(bounds["north"]),
            west=float(bounds["west"]),
            east=float(bounds["east"]),
        )


@dataclass(frozen=True)
class ExtractionBudget:
    """Wall-clock, line and byte ceilings for an extraction.

    ``None`` for the line or byte limit means unlimited.
    """

    max_wall_clock: float
    max_lines_scanned: int | None = None
    max_buffered_bytes: int | None = None

    def __post_init__(self) -> None:
        if self.max_wall_clock < 0:
            raise ValueError("max_wall_clock must not be negative")

    @property
    def exhausted(self) -> bool:
        return (
            self.max_wall_clock <= 0
            or (self.max_lines_scanned is not None and self.max_lines_scanned <= 0)
            or (self.max_buffered_bytes is not None and self.max_buffered_bytes <= 0)
        )

    def remaining(self, *, elapsed: float, lines: int, bytes_read: int) -> "ExtractionBudget":
        """Return what is left after spending ``elapsed`` seconds, lines and bytes."""

        return ExtractionBudget(
            max_wall_clock=max(0.0, self.max_wall_clock - elapsed),
            max_lines_scanned=_subtract(self.max_lines_scanned, lines),
            max_buffered_bytes=_subtract(self.max_buffered_bytes, bytes_read),
        )

    def limited_by(self, cap: "ExtractionBudget | None") -> "ExtractionBudget":
        """Return the element-wise minimum of this budget and ``cap``."""

        if cap is None:
            return self
        return ExtractionBudget(
            max_wall_clock=min(self.max_wall_clock, cap.max_wall_clock),
            max_lines_scanned=_minimum(self.max_lines_scanned, cap.max_lines_scanned),
            max_buffered_bytes=_minimum(self.max_buffered_bytes, cap.max_buffered_bytes),
        )


def _subtract(limit: int | None, used: int) -> int | None:
    if limit is None:
        return None
    return max(0, limit - used)


def _minimum(left: int | None, right: int | None) -> int | None:
    if left is None:
        return right
    if right is None:
        return left
    return min(left, right)


@dataclass(frozen=True)
class ExtractionStats:
    """Counters describing one attempt (or a whole chain run)."""

    lines_scanned: int = 0
    matched: int = 0
    elapsed_ms: float = 0.0
    strategy_name: str = ""
    lines_skipped: int = 0
    malformed: int = 0
    bytes_read: int = 0
    probes: int = 0


class FailureReason(str, enum.Enum):
    ALL_STRATEGIES_EXHAUSTED = "all_strategies_exhausted"
    DECODE_UNAVAILABLE = "decode_unavailable"
    STRATEGY_ERROR = "strategy_error"


@dataclass(frozen=True)
class Success:
    """A strategy completed its scan; ``points`` may legitimately be empty."""

    points: tuple[PointRecord, ...]
    stats: ExtractionStats

    kind = "success"

    def with_points(self, points) -> "Success":
        return replace(self, points=tuple(points))

    def raise_for_failure(self) -> "Success":
        return self


@dataclass(frozen=True)
class PartialTimeout:
    """The budget ran out; ``points`` holds whatever matched before that."""

    points: tuple[PointRecord, ...]
    stats: ExtractionStats

    kind = "partial_timeout"

    def with_points(self, points) -> "PartialTimeout":
        return replace(self, points=tuple(points))

    def raise_for_failure(self) -> "PartialTimeout":
        return self


@dataclass(frozen=True)
class Failed:
    """No strategy produced a usable result."""

    reason: FailureReason
    stats: ExtractionStats
    detail: str = ""
    points: tuple[PointRecord, ...] = field(default=(), init=False)

    kind = "failed"

    def with_points(self, points) -> "Failed":
        return self

    def raise_for_failure(self) -> "Failed":
        if self.reason is FailureReason.DECODE_UNAVAILABLE:
            raise DecodeUnavailable(self.detail)
        raise AllStrategiesExhausted(self.detail)


ExtractionOutcome = Union[Success, PartialTimeout, Failed]
