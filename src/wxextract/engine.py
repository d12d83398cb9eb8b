"""Public entry point: cached, coalesced, budgeted window extraction."""

from __future__ import annotations

import logging
from typing import Callable

from wxextract.cache import CacheKey, ResultCache
from wxextract.chain import AttemptHook, FallbackChain, log_attempt
from wxextract.config import (
    get_cache_ttl,
    get_chunk_size,
    get_default_budget,
    get_partial_ttl,
    get_sample_size,
    get_strategy_order,
)
from wxextract.errors import DecodeUnavailable
from wxextract.pipeline.aggregate import DEFAULT_COORDINATE_PRECISION, aggregate
from wxextract.records import (
    ExtractionBudget,
    ExtractionOutcome,
    ExtractionStats,
    Failed,
    FailureReason,
    SpatialWindow,
)
from wxextract.strategies import Strategy, build_strategies
from wxextract.streams.base import StreamFactory

LOGGER = logging.getLogger("wxextract.engine")

SourceResolver = Callable[[str], StreamFactory]


class ExtractionEngine:
    """Extract thresholded points for a window from a decoded grid source.

    ``sources`` maps a source identity to a :class:`StreamFactory`; it is
    called once per computed (uncached, non-coalesced) request.
    """

    def __init__(
        self,
        sources: SourceResolver,
        *,
        strategies: tuple[Strategy, ...] | None = None,
        cache: ResultCache | None = None,
        on_strategy_attempt: AttemptHook | None = log_attempt,
        default_budget: ExtractionBudget | None = None,
        scale: float = 1.0,
        coordinate_precision: int = DEFAULT_COORDINATE_PRECISION,
    ) -> None:
        self.sources = sources
        if strategies is None:
            strategies = build_strategies(get_strategy_order(), sample_size=get_sample_size())
        self.chain = FallbackChain(
            strategies,
            on_attempt=on_strategy_attempt,
            chunk_size=get_chunk_size(),
        )
        if cache is None:
            cache = ResultCache(ttl=get_cache_ttl(), partial_ttl=get_partial_ttl())
        self.cache = cache
        self.default_budget = default_budget or get_default_budget()
        self.scale = scale
        self.coordinate_precision = coordinate_precision

    def extract(
        self,
        source_identity: str,
        window: SpatialWindow,
        min_value_threshold: float,
        budget: ExtractionBudget | None = None,
    ) -> ExtractionOutcome:
        """Return the outcome for ``window``, computing it at most once per key."""

        key = CacheKey.build(source_identity, window, min_value_threshold)
        return self.cache.get(
            key,
            lambda: self._compute(source_identity, window, min_value_threshold, budget or self.default_budget),
        )

    def _compute(
        self,
        source_identity: str,
        window: SpatialWindow,
        min_value_threshold: float,
        budget: ExtractionBudget,
    ) -> ExtractionOutcome:
        try:
            factory = self.sources(source_identity)
        except DecodeUnavailable as exc:
            LOGGER.warning("Source %s unavailable: %s", source_identity, exc)
            return Failed(
                FailureReason.DECODE_UNAVAILABLE,
                ExtractionStats(strategy_name="none"),
                str(exc),
            )
        outcome = self.chain.run(source_identity, factory, window, budget)
        points = aggregate(
            outcome.points,
            min_value_threshold,
            scale=self.scale,
            coordinate_precision=self.coordinate_precision,
        )
        LOGGER.info(
            "%s: %s with %d of %d matched points at or above %g",
            source_identity,
            outcome.kind,
            len(points),
            outcome.stats.matched,
            min_value_threshold,
        )
        return outcome.with_points(points)
