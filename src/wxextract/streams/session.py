"""Per-attempt stream bookkeeping: metering, watchdog and teardown."""

from __future__ import annotations

import logging
import threading

from wxextract.budget import BudgetMeter
from wxextract.records import ExtractionStats, SpatialWindow
from wxextract.streams.base import StreamFactory
from wxextract.streams.reader import DEFAULT_CHUNK_SIZE, GridStreamReader

LOGGER = logging.getLogger("wxextract.streams")


class StreamSession:
    """Open readers for one strategy attempt and guarantee they are killed.

    Every reader shares the session's :class:`BudgetMeter`. A watchdog timer
    kills all live producers when the attempt's deadline passes, so a read
    blocked on a slow decoder returns instead of hanging. Leaving the
    session (normally or through an exception) terminates every reader it
    opened.
    """

    def __init__(
        self,
        factory: StreamFactory,
        meter: BudgetMeter,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.factory = factory
        self.meter = meter
        self.chunk_size = chunk_size
        self.opened = 0
        self._readers: list[GridStreamReader] = []
        self._lock = threading.Lock()
        self._closed = False
        self._watchdog = threading.Timer(meter.remaining_seconds, self._on_deadline)
        self._watchdog.daemon = True
        self._watchdog.start()

    def __enter__(self) -> "StreamSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def supports_skip(self) -> bool:
        return self.factory.supports_skip

    @property
    def line_count_hint(self) -> int | None:
        return self.factory.count_lines(timeout=self.meter.remaining_seconds)

    def supports_native(self, window: SpatialWindow) -> bool:
        return self.factory.supports_native(window)

    def open(self, skip_lines: int = 0) -> GridStreamReader:
        """Start a fresh producer positioned ``skip_lines`` data lines in."""

        self.meter.check_deadline()
        native_skip = skip_lines if self.factory.supports_skip else 0
        reader = self._track(self.factory.open(native_skip))
        if skip_lines and not self.factory.supports_skip:
            reader.skip(skip_lines)
        return reader

    def open_constrained(self, window: SpatialWindow) -> GridStreamReader:
        self.meter.check_deadline()
        return self._track(
            self.factory.open_constrained(window, timeout=self.meter.remaining_seconds)
        )

    def probe(self, line: int) -> float | None:
        """Return the latitude of the first record at or after data line ``line``."""

        self.meter.probes += 1
        with self.open(line) as reader:
            for record in reader:
                LOGGER.debug("Probe at line %d: latitude %.4f", line, record.latitude)
                return record.latitude
        LOGGER.debug("Probe at line %d: past end of stream", line)
        return None

    def stats(self, strategy_name: str, matched: int) -> ExtractionStats:
        return ExtractionStats(
            lines_scanned=self.meter.lines,
            matched=matched,
            elapsed_ms=round(self.meter.elapsed * 1000.0, 3),
            strategy_name=strategy_name,
            lines_skipped=self.meter.lines_skipped,
            malformed=self.meter.malformed,
            bytes_read=self.meter.bytes_read,
            probes=self.meter.probes,
        )

    def terminate_all(self) -> None:
        with self._lock:
            readers = list(self._readers)
        for reader in readers:
            reader.terminate()

    def close(self) -> None:
        self._watchdog.cancel()
        with self._lock:
            self._closed = True
        self.terminate_all()

    def _track(self, handle) -> GridStreamReader:
        reader = GridStreamReader(handle, self.meter, chunk_size=self.chunk_size)
        with self._lock:
            closed = self._closed
            if not closed:
                self._readers.append(reader)
                self.opened += 1
        if closed:
            reader.terminate()
            raise RuntimeError("StreamSession is closed")
        return reader

    def _on_deadline(self) -> None:
        LOGGER.warning(
            "Deadline of %.1fs reached; terminating %d producer(s)",
            self.meter.budget.max_wall_clock,
            len(self._readers),
        )
        self.terminate_all()
