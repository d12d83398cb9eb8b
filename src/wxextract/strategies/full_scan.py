"""Linear scan over the whole stream with ordering-based early exit."""

from __future__ import annotations

from wxextract.records import ExtractionBudget, ExtractionOutcome, SpatialWindow
from wxextract.strategies.base import run_linear
from wxextract.streams.base import StreamFactory
from wxextract.streams.session import StreamSession
from wxextract.window import DEFAULT_SAMPLE_SIZE


class FullScan:
    """Read from the first line, stopping once the stream is south of the window."""

    name = "full_scan"

    def __init__(
        self,
        *,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        cap: ExtractionBudget | None = None,
    ) -> None:
        self.sample_size = sample_size
        self.cap = cap

    def applicable(self, factory: StreamFactory, window: SpatialWindow) -> bool:
        return True

    def attempt(
        self,
        streams: StreamSession,
        window: SpatialWindow,
        budget: ExtractionBudget,
    ) -> ExtractionOutcome:
        return run_linear(
            self.name,
            streams,
            streams.open(),
            window,
            sample_size=self.sample_size,
        )
