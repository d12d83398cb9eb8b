"""Error taxonomy for extraction attempts."""

from __future__ import annotations


class ExtractionError(Exception):
    """Base class for errors raised while extracting a window."""


class DecodeUnavailable(ExtractionError):
    """Raised when the external decoder fails to start or exits nonzero."""


class BudgetExceeded(ExtractionError):
    """Raised when an attempt crosses its wall-clock, line or byte ceiling."""

    def __init__(self, limit: str, detail: str) -> None:
        super().__init__(f"{limit} budget exceeded: {detail}")
        self.limit = limit


class StrategyError(ExtractionError):
    """Raised when a strategy cannot complete for reasons local to itself."""


class AllStrategiesExhausted(ExtractionError):
    """Raised by callers that turn an exhausted chain into an exception."""
