"""Run extraction strategies in priority order under one shared budget."""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Sequence

from wxextract.budget import BudgetMeter
from wxextract.errors import BudgetExceeded, DecodeUnavailable
from wxextract.records import (
    ExtractionBudget,
    ExtractionOutcome,
    ExtractionStats,
    Failed,
    FailureReason,
    PartialTimeout,
    SpatialWindow,
    Success,
)
from wxextract.strategies import Strategy, default_strategies
from wxextract.streams.base import StreamFactory
from wxextract.streams.reader import DEFAULT_CHUNK_SIZE
from wxextract.streams.session import StreamSession

LOGGER = logging.getLogger("wxextract.chain")

AttemptHook = Callable[[str, str, ExtractionStats], None]


class ChainState(str, enum.Enum):
    PENDING = "pending"
    TRYING = "trying"
    NEXT_STRATEGY = "next_strategy"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass
class ChainRun:
    """Record of one request's walk through the strategy chain."""

    source_identity: str
    state: ChainState = ChainState.PENDING
    current: str | None = None
    attempts: list[tuple[str, ExtractionOutcome]] = field(default_factory=list)

    @property
    def tried(self) -> list[str]:
        return [name for name, _ in self.attempts]


def log_attempt(source_identity: str, strategy_name: str, stats: ExtractionStats) -> None:
    """Default telemetry hook."""

    LOGGER.info(
        "%s via %s: %d lines scanned, %d skipped, %d matched, %d probes in %.0f ms",
        source_identity,
        strategy_name,
        stats.lines_scanned,
        stats.lines_skipped,
        stats.matched,
        stats.probes,
        stats.elapsed_ms,
    )


class FallbackChain:
    """Try each strategy at most once until one completes its scan."""

    def __init__(
        self,
        strategies: Sequence[Strategy] | None = None,
        *,
        on_attempt: AttemptHook | None = log_attempt,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.strategies = tuple(strategies if strategies is not None else default_strategies())
        names = [strategy.name for strategy in self.strategies]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate strategies in chain: {names}")
        self.on_attempt = on_attempt
        self.chunk_size = chunk_size
        self._clock = clock
        self._local = threading.local()

    @property
    def last_run(self) -> ChainRun | None:
        """The most recent run started on the calling thread."""

        return getattr(self._local, "run", None)

    def run(
        self,
        source_identity: str,
        factory: StreamFactory,
        window: SpatialWindow,
        budget: ExtractionBudget,
    ) -> ExtractionOutcome:
        run = ChainRun(source_identity)
        self._local.run = run
        started = self._clock()
        lines_used = 0
        bytes_used = 0

        for strategy in self.strategies:
            remaining = budget.remaining(
                elapsed=self._clock() - started, lines=lines_used, bytes_read=bytes_used
            )
            if remaining.exhausted:
                LOGGER.warning("%s: budget spent before %s could run", source_identity, strategy.name)
                break
            if not strategy.applicable(factory, window):
                LOGGER.debug("%s: %s not applicable", source_identity, strategy.name)
                continue

            run.state = ChainState.TRYING
            run.current = strategy.name
            sub_budget = remaining.limited_by(strategy.cap)
            meter = BudgetMeter(sub_budget, clock=self._clock)
            with StreamSession(factory, meter, chunk_size=self.chunk_size) as session:
                try:
                    outcome = strategy.attempt(session, window, sub_budget)
                except DecodeUnavailable as exc:
                    LOGGER.warning("%s: decoder unavailable during %s: %s", source_identity, strategy.name, exc)
                    outcome = Failed(
                        FailureReason.DECODE_UNAVAILABLE,
                        session.stats(strategy.name, 0),
                        str(exc),
                    )
                except BudgetExceeded as exc:
                    LOGGER.warning("%s: %s stopped by budget: %s", source_identity, strategy.name, exc)
                    outcome = PartialTimeout((), session.stats(strategy.name, 0))
                except Exception as exc:
                    LOGGER.warning("%s: %s failed, falling back: %s", source_identity, strategy.name, exc)
                    outcome = Failed(
                        FailureReason.STRATEGY_ERROR,
                        session.stats(strategy.name, 0),
                        f"{strategy.name}: {exc}",
                    )
            lines_used += meter.lines
            bytes_used += meter.bytes_read
            run.attempts.append((strategy.name, outcome))
            self._notify(source_identity, strategy.name, outcome.stats)

            if isinstance(outcome, Success):
                run.state = ChainState.SUCCEEDED
                return outcome
            if isinstance(outcome, Failed) and outcome.reason is FailureReason.DECODE_UNAVAILABLE:
                run.state = ChainState.EXHAUSTED
                return outcome
            run.state = ChainState.NEXT_STRATEGY

        run.state = ChainState.EXHAUSTED
        return self._exhausted(run, started, lines_used, bytes_used)

    def _exhausted(
        self,
        run: ChainRun,
        started: float,
        lines_used: int,
        bytes_used: int,
    ) -> ExtractionOutcome:
        partials = [outcome for _, outcome in run.attempts if isinstance(outcome, PartialTimeout)]
        if partials:
            best = partials[0]
            for partial in partials[1:]:
                if len(partial.points) >= len(best.points):
                    best = partial
            LOGGER.warning(
                "%s: no strategy completed; returning partial result from %s",
                run.source_identity,
                best.stats.strategy_name,
            )
            return best
        details = "; ".join(
            outcome.detail for _, outcome in run.attempts if isinstance(outcome, Failed) and outcome.detail
        )
        stats = ExtractionStats(
            lines_scanned=lines_used,
            elapsed_ms=round((self._clock() - started) * 1000.0, 3),
            strategy_name="chain",
            bytes_read=bytes_used,
        )
        LOGGER.warning("%s: all strategies exhausted (%s)", run.source_identity, run.tried)
        return Failed(
            FailureReason.ALL_STRATEGIES_EXHAUSTED,
            stats,
            details or "no strategy could run within the budget",
        )

    def _notify(self, source_identity: str, strategy_name: str, stats: ExtractionStats) -> None:
        if self.on_attempt is None:
            return
        try:
            self.on_attempt(source_identity, strategy_name, stats)
        except Exception as exc:
            LOGGER.warning("Attempt hook failed for %s/%s: %s", source_identity, strategy_name, exc)
