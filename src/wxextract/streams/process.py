"""Subprocess pipelines exposed as :class:`ByteStreamHandle` objects."""

from __future__ import annotations

import logging
import subprocess
import tempfile
import threading
from pathlib import Path
from typing import Sequence

from wxextract.errors import DecodeUnavailable
from wxextract.streams.base import ByteStreamHandle

LOGGER = logging.getLogger("wxextract.streams")
STDERR_TAIL_BYTES = 2048
KILL_WAIT_SECONDS = 5.0


class ProcessStream(ByteStreamHandle):
    """Run a pipeline of commands and stream the last command's stdout.

    Each stage's stdout feeds the next stage's stdin, the way a shell pipe
    would, without going through a shell. Stderr of every stage is spooled to
    an anonymous temporary file so a chatty decoder can never block on a full
    pipe.
    """

    def __init__(
        self,
        commands: Sequence[Sequence[str]],
        *,
        cleanup: Sequence[Path] = (),
    ) -> None:
        if not commands:
            raise ValueError("ProcessStream needs at least one command")
        self.commands = [list(cmd) for cmd in commands]
        self._cleanup = list(cleanup)
        self._stderr = tempfile.TemporaryFile()
        self._procs: list[subprocess.Popen] = []
        self._lock = threading.Lock()
        self._killed = False
        self._closed = False
        try:
            upstream = None
            for argv in self.commands:
                proc = subprocess.Popen(
                    argv,
                    stdin=upstream if upstream is not None else subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=self._stderr,
                )
                if upstream is not None:
                    # Parent copy closed so the upstream stage sees SIGPIPE.
                    upstream.close()
                upstream = proc.stdout
                self._procs.append(proc)
        except OSError as exc:
            self._teardown()
            raise DecodeUnavailable(f"Could not start {self.commands[len(self._procs)][0]}: {exc}") from exc
        LOGGER.debug("Started pipeline %s", " | ".join(" ".join(cmd) for cmd in self.commands))

    @property
    def killed(self) -> bool:
        return self._killed

    @property
    def pids(self) -> list[int]:
        return [proc.pid for proc in self._procs]

    @property
    def running(self) -> bool:
        return any(proc.poll() is None for proc in self._procs)

    def read(self, size: int) -> bytes:
        if self._closed:
            return b""
        stdout = self._procs[-1].stdout
        try:
            return stdout.read1(size)
        except (OSError, ValueError):
            # Pipe closed underneath us by kill().
            if self._killed:
                return b""
            raise

    def exit_status(self) -> int:
        status = 0
        for proc in self._procs:
            code = proc.wait()
            if code != 0 and status == 0:
                status = code
        return status

    def failure_detail(self) -> str:
        try:
            self._stderr.seek(0, 2)
            size = self._stderr.tell()
            self._stderr.seek(max(0, size - STDERR_TAIL_BYTES))
            return self._stderr.read().decode("utf-8", errors="replace").strip()
        except (OSError, ValueError):
            return ""

    def kill(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._killed = any(proc.poll() is None for proc in self._procs)
            self._teardown()

    def close(self) -> None:
        """Release resources after the producer finished on its own."""

        with self._lock:
            if not self._closed:
                self._teardown()

    def _teardown(self) -> None:
        for proc in self._procs:
            if proc.poll() is None:
                proc.kill()
        for proc in self._procs:
            if proc.stdout is not None:
                proc.stdout.close()
            try:
                proc.wait(timeout=KILL_WAIT_SECONDS)
            except subprocess.TimeoutExpired:
                LOGGER.warning("Producer pid %s did not exit after kill", proc.pid)
        self._stderr.close()
        for path in self._cleanup:
            path.unlink(missing_ok=True)
        self._closed = True
