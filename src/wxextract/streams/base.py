"""Core interfaces for external grid producers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from wxextract.errors import StrategyError
from wxextract.records import SpatialWindow


class ByteStreamHandle(ABC):
    """A live producer of raw decoder output with a kill switch."""

    @abstractmethod
    def read(self, size: int) -> bytes:
        """Return up to ``size`` bytes, or ``b""`` once the producer is done."""

    @abstractmethod
    def kill(self) -> None:
        """Stop the producer and release its pipes. Must be idempotent."""

    def exit_status(self) -> int:
        """Return the producer's exit status once output is exhausted."""

        return 0

    @property
    def killed(self) -> bool:
        return False

    def failure_detail(self) -> str:
        """Diagnostic text to attach when the producer failed."""

        return ""


class StreamFactory(ABC):
    """Start a fresh decoder run over one source file."""

    supports_skip: bool = False

    @property
    def line_count_hint(self) -> int | None:
        """Number of data lines the decoder will emit, when cheaply known."""

        return None

    def count_lines(self, timeout: float | None = None) -> int | None:
        """Like :attr:`line_count_hint`, giving up after ``timeout`` seconds."""

        return self.line_count_hint

    @abstractmethod
    def open(self, skip_lines: int = 0) -> ByteStreamHandle:
        """Start the decoder; when ``supports_skip`` is set, skip data lines upstream."""

    def supports_native(self, window: SpatialWindow) -> bool:
        """Whether the decoder can apply ``window`` as a spatial predicate itself."""

        return False

    def open_constrained(self, window: SpatialWindow, timeout: float | None = None) -> ByteStreamHandle:
        """Start the decoder with ``window`` applied upstream; setup must finish within ``timeout``."""

        raise StrategyError(f"{type(self).__name__} has no native spatial constraint")
