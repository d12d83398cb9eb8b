"""Bounded-memory extraction of spatial windows from decoded grid streams."""

from __future__ import annotations

from .cache import CacheKey, ResultCache
from .chain import FallbackChain
from .engine import ExtractionEngine
from .errors import (
    AllStrategiesExhausted,
    BudgetExceeded,
    DecodeUnavailable,
    ExtractionError,
    StrategyError,
)
from .records import (
    ExtractionBudget,
    ExtractionOutcome,
    ExtractionStats,
    Failed,
    FailureReason,
    PartialTimeout,
    PointRecord,
    SpatialWindow,
    Success,
)
from .window import LongitudeConvention

__all__ = [
    "AllStrategiesExhausted",
    "BudgetExceeded",
    "CacheKey",
    "DecodeUnavailable",
    "ExtractionBudget",
    "ExtractionEngine",
    "ExtractionError",
    "ExtractionOutcome",
    "ExtractionStats",
    "FallbackChain",
    "Failed",
    "FailureReason",
    "LongitudeConvention",
    "PartialTimeout",
    "PointRecord",
    "ResultCache",
    "SpatialWindow",
    "StrategyError",
    "Success",
]
