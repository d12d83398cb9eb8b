"""Strategy protocol and the shared windowed scan loop."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol, runtime_checkable

from wxextract.errors import BudgetExceeded
from wxextract.records import (
    ExtractionBudget,
    ExtractionOutcome,
    PartialTimeout,
    PointRecord,
    SpatialWindow,
    Success,
)
from wxextract.streams.base import StreamFactory
from wxextract.streams.session import StreamSession
from wxextract.window import DEFAULT_SAMPLE_SIZE, WindowMatcher, classify_stream

LOGGER = logging.getLogger("wxextract.strategies")


@runtime_checkable
class Strategy(Protocol):
    """One way of locating a window's records in a grid stream."""

    name: str
    cap: ExtractionBudget | None

    def applicable(self, factory: StreamFactory, window: SpatialWindow) -> bool:
        ...

    def attempt(
        self,
        streams: StreamSession,
        window: SpatialWindow,
        budget: ExtractionBudget,
    ) -> ExtractionOutcome:
        ...


class OrderingMonitor:
    """Track whether latitudes are observed to be descending.

    Ordering is trusted only after at least one strict decrease and no
    increase; a single increase disables it for the rest of the stream.
    """

    def __init__(self, *, assume_descending: bool = False) -> None:
        self.descending = assume_descending
        self.violated = False
        self._previous: float | None = None

    def observe(self, latitude: float) -> None:
        previous = self._previous
        self._previous = latitude
        if previous is None or self.violated:
            return
        if latitude > previous:
            if self.descending:
                LOGGER.warning("Latitude increased %.4f -> %.4f; disabling early exit", previous, latitude)
            self.violated = True
            self.descending = False
        elif latitude < previous:
            self.descending = True


def scan_window(
    records: Iterable[PointRecord],
    window: SpatialWindow,
    matches: list[PointRecord],
    *,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    assume_descending: bool = False,
) -> bool:
    """
    Append records inside ``window`` to ``matches`` in Signed180.

    Returns ``True`` when the scan stopped early because the stream moved
    strictly south of the window, ``False`` when the stream ran out. Budget
    errors propagate with ``matches`` holding everything found so far.
    """

    convention, stream = classify_stream(records, sample_size)
    matcher = WindowMatcher(window, convention)
    ordering = OrderingMonitor(assume_descending=assume_descending)
    for record in stream:
        ordering.observe(record.latitude)
        if ordering.descending and matcher.is_south_of(record.latitude):
            return True
        if matcher.contains(record.latitude, record.longitude):
            matches.append(matcher.to_signed(record))
    return False


def run_linear(
    name: str,
    streams: StreamSession,
    reader,
    window: SpatialWindow,
    *,
    sample_size: int,
    assume_descending: bool = False,
) -> ExtractionOutcome:
    """Scan ``reader`` to the end of the window, downgrading budget stops."""

    matches: list[PointRecord] = []
    with reader:
        try:
            stopped_early = scan_window(
                reader,
                window,
                matches,
                sample_size=sample_size,
                assume_descending=assume_descending,
            )
        except BudgetExceeded as exc:
            LOGGER.warning("%s stopped by budget after %d lines: %s", name, streams.meter.lines, exc)
            return PartialTimeout(tuple(matches), streams.stats(name, len(matches)))
    if stopped_early:
        LOGGER.debug("%s passed south of the window after %d lines", name, streams.meter.lines)
    return Success(tuple(matches), streams.stats(name, len(matches)))
