"""Delegate spatial filtering to the decoder when it supports a predicate."""

from __future__ import annotations

import logging

from wxextract.errors import DecodeUnavailable, StrategyError
from wxextract.records import ExtractionBudget, ExtractionOutcome, SpatialWindow
from wxextract.strategies.base import run_linear
from wxextract.streams.base import StreamFactory
from wxextract.streams.session import StreamSession
from wxextract.window import DEFAULT_SAMPLE_SIZE

LOGGER = logging.getLogger("wxextract.strategies")


class NativeConstraint:
    """Ask the decoder for the window only, then re-check every record.

    Native predicates have been seen to silently do nothing, so the output
    still goes through the window matcher and the usual budget ceilings.
    """

    name = "native_constraint"

    def __init__(
        self,
        *,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        cap: ExtractionBudget | None = None,
    ) -> None:
        self.sample_size = sample_size
        self.cap = cap

    def applicable(self, factory: StreamFactory, window: SpatialWindow) -> bool:
        return factory.supports_native(window)

    def attempt(
        self,
        streams: StreamSession,
        window: SpatialWindow,
        budget: ExtractionBudget,
    ) -> ExtractionOutcome:
        try:
            outcome = run_linear(
                self.name,
                streams,
                streams.open_constrained(window),
                window,
                sample_size=self.sample_size,
            )
        except DecodeUnavailable as exc:
            # The subset or filter stage failed; the source itself may still decode.
            raise StrategyError(f"Constrained decode failed: {exc}") from exc
        stats = outcome.stats
        if stats.lines_scanned and stats.matched < stats.lines_scanned // 2:
            LOGGER.warning(
                "Native constraint kept only %d of %d lines in the window; predicate may be ignored",
                stats.matched,
                stats.lines_scanned,
            )
        return outcome
