"""Mutable accounting for one strategy attempt's budget."""

from __future__ import annotations

import time
from typing import Callable

from wxextract.errors import BudgetExceeded
from wxextract.records import ExtractionBudget


class BudgetMeter:
    """Charge lines, bytes and time against an :class:`ExtractionBudget`.

    A meter is shared by every reader opened during one attempt, so probe
    reads and the final linear read draw from the same ceilings.
    """

    def __init__(
        self,
        budget: ExtractionBudget,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.budget = budget
        self._clock = clock
        self.started_at = clock()
        self.deadline = self.started_at + budget.max_wall_clock
        self.lines = 0
        self.lines_skipped = 0
        self.malformed = 0
        self.bytes_read = 0
        self.probes = 0
        self.line_cap: int | None = None

    @property
    def elapsed(self) -> float:
        return self._clock() - self.started_at

    @property
    def remaining_seconds(self) -> float:
        return max(0.0, self.deadline - self._clock())

    def expired(self) -> bool:
        return self._clock() >= self.deadline

    def check_deadline(self) -> None:
        if self.expired():
            raise BudgetExceeded(
                "wall_clock", f"{self.budget.max_wall_clock:.3f}s elapsed"
            )

    def charge_bytes(self, count: int) -> None:
        """Account for a chunk about to be buffered."""

        self.check_deadline()
        limit = self.budget.max_buffered_bytes
        if limit is not None and self.bytes_read + count > limit:
            raise BudgetExceeded("bytes", f"{limit} bytes read")
        self.bytes_read += count

    def charge_line(self) -> None:
        """Account for one data line; raises before the line past the limit."""

        limit = self.budget.max_lines_scanned
        if limit is not None and self.lines >= limit:
            raise BudgetExceeded("lines", f"{limit} lines scanned")
        if self.line_cap is not None and self.lines >= self.line_cap:
            raise BudgetExceeded("lines", f"{self.line_cap} line cap reached")
        self.lines += 1

    def cap_lines(self, additional: int) -> None:
        """Allow at most ``additional`` more lines for the rest of the attempt."""

        self.line_cap = self.lines + max(0, additional)
