"""ecCodes-backed implementation of :class:`StreamFactory`."""

from __future__ import annotations

import logging
import subprocess
import tempfile
from pathlib import Path

from wxextract.errors import BudgetExceeded, StrategyError
from wxextract.records import SpatialWindow
from wxextract.streams.base import ByteStreamHandle, StreamFactory
from wxextract.streams.process import ProcessStream
from wxextract.window import COORD_EPSILON

LOGGER = logging.getLogger("wxextract.streams")
METADATA_TIMEOUT_SECONDS = 30.0
SUBSET_TIMEOUT_SECONDS = 120.0


def _bounded(limit: float, timeout: float | None) -> float:
    return limit if timeout is None else max(0.0, min(limit, timeout))


class EccodesStreamFactory(StreamFactory):
    """Stream ``grib_get_data`` output for one GRIB2 file.

    Skipping is pushed into a ``tail`` stage so skipped lines never reach
    Python. The window can be applied upstream in two ways: ``wgrib2
    -small_grib`` cuts a subset file before decoding, and an ``awk`` stage
    drops out-of-window lines from the decoder's output.
    """

    supports_skip = True

    def __init__(
        self,
        path: Path | str,
        *,
        grib_get_data: str = "grib_get_data",
        grib_get: str | None = "grib_get",
        tail: str = "tail",
        awk: str | None = "awk",
        wgrib2: str | None = None,
        work_dir: Path | None = None,
        line_count: int | None = None,
    ) -> None:
        self.path = Path(path)
        self.grib_get_data = grib_get_data
        self.grib_get = grib_get
        self.tail = tail
        self.awk = awk
        self.wgrib2 = wgrib2
        self.work_dir = work_dir
        self._line_count = line_count
        self._line_count_checked = line_count is not None

    @property
    def line_count_hint(self) -> int | None:
        return self.count_lines()

    def count_lines(self, timeout: float | None = None) -> int | None:
        if not self._line_count_checked:
            self._line_count = self._query_point_count(_bounded(METADATA_TIMEOUT_SECONDS, timeout))
            self._line_count_checked = True
        return self._line_count

    def decode_command(self, path: Path | None = None) -> list[str]:
        return [self.grib_get_data, str(path or self.path)]

    def skip_command(self, skip_lines: int) -> list[str]:
        # Line 1 is the header; data line i (0-based) is output line i + 2.
        return [self.tail, "-n", f"+{skip_lines + 2}"]

    def subset_command(self, window: SpatialWindow, out_path: Path) -> list[str]:
        canonical = window.canonical()
        west = canonical.west % 360.0
        east = canonical.east % 360.0
        return [
            str(self.wgrib2),
            str(self.path),
            "-small_grib",
            f"{west:g}:{east:g}",
            f"{canonical.south:g}:{canonical.north:g}",
            str(out_path),
        ]

    def filter_command(self, window: SpatialWindow) -> list[str]:
        """awk stage keeping the header and lines inside ``window``.

        Longitudes are folded to Signed180 inside awk, so the filter works on
        either convention; bounds are widened by the matcher's tolerance.
        """

        canonical = window.canonical()
        south = canonical.south - COORD_EPSILON
        north = canonical.north + COORD_EPSILON
        west = canonical.west - COORD_EPSILON
        east = canonical.east + COORD_EPSILON
        if window.spans_globe:
            lon_test = "1"
        elif canonical.west <= canonical.east:
            lon_test = f"lon >= {west:.9f} && lon <= {east:.9f}"
        else:
            lon_test = f"(lon >= {west:.9f} || lon <= {east:.9f})"
        program = (
            "NR == 1 && $1 !~ /^[-+.0-9]/ { print; next } "
            "{ lat = $1 + 0; lon = $2 + 0; if (lon > 180) lon -= 360; "
            f"if (lat >= {south:.9f} && lat <= {north:.9f} && {lon_test}) print }}"
        )
        return [str(self.awk), program]

    def open(self, skip_lines: int = 0) -> ByteStreamHandle:
        commands = [self.decode_command()]
        if skip_lines > 0:
            commands.append(self.skip_command(skip_lines))
        return ProcessStream(commands)

    def supports_native(self, window: SpatialWindow) -> bool:
        return self._subset_possible(window) or bool(self.awk)

    def open_constrained(self, window: SpatialWindow, timeout: float | None = None) -> ByteStreamHandle:
        if self._subset_possible(window):
            return self._open_subset(window, _bounded(SUBSET_TIMEOUT_SECONDS, timeout))
        if self.awk:
            return ProcessStream([self.decode_command(), self.filter_command(window)])
        raise StrategyError(f"No native window filter available for {window}")

    def _subset_possible(self, window: SpatialWindow) -> bool:
        if not self.wgrib2 or window.spans_globe:
            return False
        canonical = window.canonical()
        # -small_grib takes one contiguous 0-360 interval.
        return (canonical.west % 360.0) <= (canonical.east % 360.0)

    def _open_subset(self, window: SpatialWindow, timeout: float) -> ByteStreamHandle:
        if self.work_dir is not None:
            self.work_dir.mkdir(parents=True, exist_ok=True)
        handle = tempfile.NamedTemporaryFile(
            prefix="subset_", suffix=".grib2", dir=self.work_dir, delete=False
        )
        handle.close()
        subset_path = Path(handle.name)
        try:
            subprocess.run(
                self.subset_command(window, subset_path),
                check=True,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            subset_path.unlink(missing_ok=True)
            raise BudgetExceeded("wall_clock", f"wgrib2 subset still running after {timeout:.1f}s") from exc
        except (OSError, subprocess.CalledProcessError) as exc:
            subset_path.unlink(missing_ok=True)
            raise StrategyError(f"wgrib2 subset failed for {self.path}: {exc}") from exc
        LOGGER.debug("Cut %s down to %s for %s", self.path, subset_path, window)
        return ProcessStream([self.decode_command(subset_path)], cleanup=[subset_path])

    def _query_point_count(self, timeout: float) -> int | None:
        if not self.grib_get:
            return None
        try:
            result = subprocess.run(
                [self.grib_get, "-p", "numberOfDataPoints", str(self.path)],
                check=True,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise BudgetExceeded("wall_clock", f"grib_get still running after {timeout:.1f}s") from exc
        except (OSError, subprocess.CalledProcessError) as exc:
            LOGGER.warning("Could not read point count for %s: %s", self.path, exc)
            return None
        counts = [int(token) for token in result.stdout.split() if token.isdigit()]
        if not counts:
            return None
        # One line per point for the first message only.
        return counts[0]
