"""Incremental line reader over a decoder's raw output."""

from __future__ import annotations

import logging
import math
import re
from typing import Iterator

from wxextract.budget import BudgetMeter
from wxextract.errors import BudgetExceeded, DecodeUnavailable
from wxextract.records import PointRecord
from wxextract.streams.base import ByteStreamHandle

LOGGER = logging.getLogger("wxextract.streams")

DEFAULT_CHUNK_SIZE = 64 * 1024
MAX_LINE_BYTES = 4096
HEADER_TOKENS = ("latitude", "longitude", "lat", "lon", "value")
_FIELD_SPLIT = re.compile(rb"[\s,]+")


class GridStreamReader:
    """Lazy, single-pass iterator of :class:`PointRecord` from a byte producer.

    The reader never holds more than one chunk plus one partial line. Every
    chunk is charged to ``meter`` before it is buffered and every data line
    before it is parsed, so a line ceiling of N stops the reader with exactly
    N lines scanned.
    """

    def __init__(
        self,
        handle: ByteStreamHandle,
        meter: BudgetMeter,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.handle = handle
        self.meter = meter
        self.chunk_size = chunk_size
        self.lines_scanned = 0
        self.malformed = 0
        self.lines_skipped = 0
        self.header: str | None = None
        self._header_resolved = False
        self._pending_skip = 0
        self._started = False
        self._terminated = False

    def __enter__(self) -> "GridStreamReader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.terminate()

    def skip(self, count: int) -> None:
        """Discard the next ``count`` data lines without parsing them."""

        if self._started:
            raise RuntimeError("skip() must be called before iteration starts")
        self._pending_skip += max(0, count)

    def terminate(self) -> None:
        """Kill the producer. Safe to call any number of times."""

        if not self._terminated:
            self._terminated = True
            self.handle.kill()

    def __iter__(self) -> Iterator[PointRecord]:
        if self._started:
            raise RuntimeError("GridStreamReader is not restartable")
        self._started = True
        return self._records()

    def _records(self) -> Iterator[PointRecord]:
        for line in self._lines():
            if not self._header_resolved:
                self._header_resolved = True
                if _looks_like_header(line):
                    self.header = line.decode("utf-8", errors="replace").strip()
                    continue
            if self._pending_skip:
                self._pending_skip -= 1
                self.lines_skipped += 1
                self.meter.lines_skipped += 1
                continue
            self.meter.charge_line()
            self.lines_scanned += 1
            record = _parse(line)
            if record is None:
                self._count_malformed()
                continue
            yield record

    def _count_malformed(self) -> None:
        self.malformed += 1
        self.meter.malformed += 1

    def _lines(self) -> Iterator[bytes]:
        partial = b""
        while True:
            if self._terminated:
                raise BudgetExceeded("wall_clock", "producer terminated")
            chunk = self.handle.read(self.chunk_size)
            if not chunk:
                break
            self.meter.charge_bytes(len(chunk))
            data = partial + chunk if partial else chunk
            lines = data.split(b"\n")
            partial = lines.pop()
            if len(partial) > MAX_LINE_BYTES:
                LOGGER.debug("Dropping %d-byte unterminated line", len(partial))
                self._count_malformed()
                partial = b""
            for line in lines:
                if line.strip():
                    yield line
        self._finish()
        if partial.strip():
            yield partial

    def _finish(self) -> None:
        if self._terminated or self.handle.killed:
            raise BudgetExceeded("wall_clock", "producer terminated before end of stream")
        status = self.handle.exit_status()
        if status != 0:
            detail = self.handle.failure_detail()
            raise DecodeUnavailable(f"Decoder exited with status {status}: {detail}".rstrip(": "))


def _looks_like_header(line: bytes) -> bool:
    lowered = line.decode("utf-8", errors="replace").lower()
    return any(token in lowered for token in HEADER_TOKENS)


def _parse(line: bytes) -> PointRecord | None:
    fields = [field for field in _FIELD_SPLIT.split(line.strip()) if field]
    if len(fields) != 3:
        return None
    try:
        lat, lon, value = (float(field) for field in fields)
    except ValueError:
        return None
    if not (math.isfinite(lat) and math.isfinite(lon) and math.isfinite(value)):
        return None
    return PointRecord(lat, lon, value)
