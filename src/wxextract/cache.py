"""In-memory result cache with per-key request coalescing."""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable

from wxextract.records import ExtractionOutcome, Failed, PartialTimeout, SpatialWindow, Success

LOGGER = logging.getLogger("wxextract.cache")

KEY_PRECISION = 6


@dataclass(frozen=True)
class CacheKey:
    """Identity of one extraction request."""

    source_identity: str
    south: float
    north: float
    west: float
    east: float
    min_value_threshold: float

    @classmethod
    def build(
        cls,
        source_identity: str,
        window: SpatialWindow,
        min_value_threshold: float,
    ) -> "CacheKey":
        canonical = window.canonical()
        return cls(
            source_identity,
            round(canonical.south, KEY_PRECISION),
            round(canonical.north, KEY_PRECISION),
            round(canonical.west, KEY_PRECISION),
            round(canonical.east, KEY_PRECISION),
            float(min_value_threshold),
        )

    @property
    def digest(self) -> str:
        raw = "|".join(
            str(part)
            for part in (
                self.source_identity,
                self.south,
                self.north,
                self.west,
                self.east,
                self.min_value_threshold,
            )
        )
        return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class CacheEntry:
    outcome: ExtractionOutcome
    created_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now > self.created_at + self.ttl


class ResultCache:
    """
    Cache extraction outcomes and collapse concurrent identical requests.

    The first caller for a key runs ``compute`` on its own thread; callers
    arriving while it runs wait on the same future and receive the same
    outcome object. ``Failed`` outcomes and exceptions are broadcast but never
    stored. Expired entries are dropped when next looked up.
    """

    def __init__(
        self,
        *,
        ttl: float,
        partial_ttl: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.partial_ttl = partial_ttl
        self._clock = clock
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._inflight: dict[CacheKey, Future] = {}
        self._lock = threading.Lock()
        self.computations = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: CacheKey, compute: Callable[[], ExtractionOutcome]) -> ExtractionOutcome:
        with self._lock:
            entry = self._lookup(key)
            if entry is not None:
                LOGGER.info("Cache hit for %s (%s)", key.source_identity, key.digest)
                return entry.outcome
            future = self._inflight.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._inflight[key] = future
                self.computations += 1

        if not leader:
            LOGGER.debug("Joining in-flight extraction for %s (%s)", key.source_identity, key.digest)
            return future.result()

        try:
            outcome = compute()
        except BaseException as exc:
            with self._lock:
                del self._inflight[key]
            future.set_exception(exc)
            raise
        with self._lock:
            ttl = self._ttl_for(outcome)
            if ttl is not None:
                self._entries[key] = CacheEntry(outcome, self._clock(), ttl)
            del self._inflight[key]
        future.set_result(outcome)
        return outcome

    def peek(self, key: CacheKey) -> ExtractionOutcome | None:
        with self._lock:
            entry = self._lookup(key)
        return entry.outcome if entry is not None else None

    def invalidate(self, key: CacheKey) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _lookup(self, key: CacheKey) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            LOGGER.debug("Evicting expired entry for %s (%s)", key.source_identity, key.digest)
            del self._entries[key]
            return None
        return entry

    def _ttl_for(self, outcome: ExtractionOutcome) -> float | None:
        if isinstance(outcome, Success):
            return self.ttl
        if isinstance(outcome, PartialTimeout):
            return self.partial_ttl
        if isinstance(outcome, Failed):
            LOGGER.info("Not caching failed outcome (%s)", outcome.reason.value)
        return None
