"""Binary-search the window's first line with probe reads, then scan linearly."""

from __future__ import annotations

import logging

from wxextract.errors import StrategyError
from wxextract.records import ExtractionBudget, ExtractionOutcome, SpatialWindow
from wxextract.strategies.base import run_linear
from wxextract.streams.base import StreamFactory
from wxextract.streams.session import StreamSession
from wxextract.window import COORD_EPSILON, DEFAULT_SAMPLE_SIZE

LOGGER = logging.getLogger("wxextract.strategies")


class AdaptiveLocate:
    """
    Locate the window in a latitude-sorted stream without a full linear pass.

    Each probe starts a fresh producer that skips straight to one line and
    reports its latitude. Probes bracket the first line at or south of the
    window's north edge; the linear read then starts at the last line known
    to lie north of the window, capped at ``margin_factor`` times the span
    the probes predict.
    """

    name = "adaptive_locate"

    def __init__(
        self,
        *,
        max_probes: int = 32,
        tolerance_lines: int = 1,
        margin_factor: float = 2.0,
        min_linear_lines: int = 10_000,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        cap: ExtractionBudget | None = None,
    ) -> None:
        self.max_probes = max_probes
        self.tolerance_lines = max(1, tolerance_lines)
        self.margin_factor = margin_factor
        self.min_linear_lines = min_linear_lines
        self.sample_size = sample_size
        self.cap = cap

    def applicable(self, factory: StreamFactory, window: SpatialWindow) -> bool:
        # Without an upstream skip every probe re-reads the prefix in Python.
        return factory.supports_skip

    def attempt(
        self,
        streams: StreamSession,
        window: SpatialWindow,
        budget: ExtractionBudget,
    ) -> ExtractionOutcome:
        north = window.north + COORD_EPSILON
        probes: dict[int, float] = {}

        def probe(line: int) -> float | None:
            latitude = streams.probe(line)
            if latitude is not None:
                probes[line] = latitude
            return latitude

        lo = -1
        hi = streams.line_count_hint
        if hi is None:
            lo, hi = self._gallop(probe, north)

        if hi is not None:
            while hi - lo > self.tolerance_lines and len(probes) < self.max_probes:
                mid = (lo + hi) // 2
                latitude = probe(mid)
                if latitude is not None and latitude > north:
                    lo = mid
                else:
                    hi = mid
            LOGGER.debug("Bracketed window north edge between lines %d and %s", lo, hi)

        ordered = sorted(probes.items())
        lats = [lat for _, lat in ordered]
        if any(later > earlier for earlier, later in zip(lats, lats[1:])):
            raise StrategyError("Probe latitudes are not descending; stream is not latitude-ordered")

        start = max(lo, 0)
        span = self._estimate_lines(ordered, probes.get(start, window.north), window)
        if span is not None:
            limit = max(self.min_linear_lines, int(self.margin_factor * span))
            streams.meter.cap_lines(limit)
            LOGGER.debug("Linear phase from line %d capped at %d lines", start, limit)

        return run_linear(
            self.name,
            streams,
            streams.open(start),
            window,
            sample_size=self.sample_size,
            assume_descending=len(set(lats)) > 1,
        )

    def _gallop(self, probe, north: float) -> tuple[int, int | None]:
        lo, line = -1, 0
        for _ in range(self.max_probes):
            latitude = probe(line)
            if latitude is None or latitude <= north:
                return lo, line
            lo = line
            line = 1 if line == 0 else line * 2
        return lo, None

    @staticmethod
    def _estimate_lines(
        ordered: list[tuple[int, float]],
        start_latitude: float,
        window: SpatialWindow,
    ) -> float | None:
        if len(ordered) < 2:
            return None
        (first_line, first_lat), (last_line, last_lat) = ordered[0], ordered[-1]
        if first_lat <= last_lat:
            return None
        lines_per_degree = (last_line - first_line) / (first_lat - last_lat)
        return max(0.0, start_latitude - window.south) * lines_per_degree
