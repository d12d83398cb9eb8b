"""Synthetic in-process grid producer used for tests and benchmarks."""

from __future__ import annotations

import itertools
import threading
from typing import Callable, Iterator

import numpy as np

from wxextract.records import PointRecord, SpatialWindow
from wxextract.streams.base import ByteStreamHandle, StreamFactory
from wxextract.window import WindowMatcher, infer_convention

HEADER = b"Latitude, Longitude, Value\n"
BATCH_LINES = 4096

ValueFn = Callable[[np.ndarray], np.ndarray]


def _row_mod_100(index: np.ndarray) -> np.ndarray:
    return index % 100


class IteratorStream(ByteStreamHandle):
    """Serve an iterator of byte blobs in fixed-size chunks.

    Chunks are cut at ``chunk_size`` regardless of line boundaries, which is
    how pipe reads behave.
    """

    def __init__(self, blobs: Iterator[bytes], *, chunk_size: int = 8192, status: int = 0) -> None:
        self._blobs = blobs
        self._buffer = b""
        self._chunk_size = chunk_size
        self._status = status
        self._killed = False
        self._done = False
        self.bytes_served = 0
        self.kill_calls = 0

    @property
    def killed(self) -> bool:
        return self._killed

    def read(self, size: int) -> bytes:
        size = min(size, self._chunk_size)
        while len(self._buffer) < size and not self._done and not self._killed:
            blob = next(self._blobs, None)
            if blob is None:
                self._done = True
                break
            self._buffer += blob
        if self._killed:
            return b""
        chunk, self._buffer = self._buffer[:size], self._buffer[size:]
        self.bytes_served += len(chunk)
        return chunk

    def exit_status(self) -> int:
        return self._status

    def failure_detail(self) -> str:
        return "synthetic failure" if self._status else ""

    def kill(self) -> None:
        self.kill_calls += 1
        if not self._done:
            self._killed = True
        self._buffer = b""


class SyntheticGrid(StreamFactory):
    """A latitude-descending raster emitted as ``grib_get_data`` text.

    Lines walk ``rows`` latitude rows from ``lat_start`` to ``lat_end``; each
    row holds ``cols`` longitudes from ``lon_start`` to ``lon_end``. With
    ``rows=None`` the stream never ends and every line sits at ``lat_start``.
    ``value_fn`` maps line indices to values (default: index mod 100).
    """

    def __init__(
        self,
        rows: int | None,
        *,
        cols: int = 1,
        lat_start: float = 55.0,
        lat_end: float = 20.0,
        lon_start: float = 262.5,
        lon_end: float | None = None,
        value_fn: ValueFn | None = None,
        header: bool = True,
        chunk_size: int = 8192,
        native_skip: bool = True,
        native_filter: bool = False,
        native_noop: bool = False,
        exit_status: int = 0,
    ) -> None:
        if rows is not None and rows < 1:
            raise ValueError("rows must be positive")
        self.rows = rows
        self.cols = cols
        self.lat_start = lat_start
        self.lat_end = lat_end
        self.lon_start = lon_start
        self.lon_end = lon_start if lon_end is None else lon_end
        self.value_fn = value_fn or _row_mod_100
        self.header = header
        self.chunk_size = chunk_size
        self.supports_skip = native_skip
        self.native_filter = native_filter
        self.native_noop = native_noop
        self.exit_status = exit_status
        self.handles: list[IteratorStream] = []
        self.skips: list[int] = []
        self._lock = threading.Lock()

    @property
    def opens(self) -> int:
        return len(self.handles)

    @property
    def bytes_served(self) -> int:
        return sum(handle.bytes_served for handle in self.handles)

    @property
    def total_lines(self) -> int | None:
        if self.rows is None:
            return None
        return self.rows * self.cols

    @property
    def line_count_hint(self) -> int | None:
        return self.total_lines

    def open(self, skip_lines: int = 0) -> ByteStreamHandle:
        start = skip_lines if self.supports_skip else 0
        with self._lock:
            self.skips.append(start)
        # Like ``tail -n +K``, a natively skipped stream carries no header.
        header = self.header and start == 0
        return self._register(self._blobs(start, header=header))

    def supports_native(self, window: SpatialWindow) -> bool:
        return self.native_filter

    def open_constrained(self, window: SpatialWindow, timeout: float | None = None) -> ByteStreamHandle:
        blobs = self._blobs(0, header=self.header)
        if not self.native_noop:
            blobs = self._filtered(blobs, window)
        return self._register(blobs)

    def records(self) -> Iterator[PointRecord]:
        """Yield every record exactly as a reader would parse it."""

        for blob in self._blobs(0, header=False):
            for line in blob.splitlines():
                lat, lon, value = (float(field) for field in line.split())
                yield PointRecord(lat, lon, value)

    def _register(self, blobs: Iterator[bytes]) -> IteratorStream:
        handle = IteratorStream(blobs, chunk_size=self.chunk_size, status=self.exit_status)
        with self._lock:
            self.handles.append(handle)
        return handle

    def _blobs(self, start: int, *, header: bool) -> Iterator[bytes]:
        if header:
            yield HEADER
        total = self.total_lines
        batch_starts = itertools.count(start, BATCH_LINES)
        for first in batch_starts:
            last = first + BATCH_LINES if total is None else min(first + BATCH_LINES, total)
            if last <= first:
                return
            yield self._format(np.arange(first, last, dtype=np.int64))

    def _format(self, index: np.ndarray) -> bytes:
        row = index // self.cols
        col = index % self.cols
        if self.rows is None or self.rows == 1:
            lats = np.full(index.shape, self.lat_start, dtype=float)
        else:
            lats = self.lat_start + row * (self.lat_end - self.lat_start) / (self.rows - 1)
        if self.cols == 1:
            lons = np.full(index.shape, self.lon_start, dtype=float)
        else:
            lons = self.lon_start + col * (self.lon_end - self.lon_start) / (self.cols - 1)
        values = self.value_fn(index)
        lines = [
            f"{lat:.6f} {lon:.6f} {value:g}\n"
            for lat, lon, value in zip(lats.tolist(), lons.tolist(), np.asarray(values).tolist())
        ]
        return "".join(lines).encode("ascii")

    def _filtered(self, blobs: Iterator[bytes], window: SpatialWindow) -> Iterator[bytes]:
        matcher = WindowMatcher(window, infer_convention([self.lon_start, self.lon_end]))
        for blob in blobs:
            kept = []
            for line in blob.splitlines(keepends=True):
                fields = line.split()
                if len(fields) == 3 and not line.startswith(b"L"):
                    if matcher.contains(float(fields[0]), float(fields[1])):
                        kept.append(line)
                else:
                    kept.append(line)
            if kept:
                yield b"".join(kept)
