"""Extraction strategies, in default priority order."""

from __future__ import annotations

from .adaptive import AdaptiveLocate
from .base import Strategy, scan_window
from .full_scan import FullScan
from .native import NativeConstraint

STRATEGY_CLASSES: dict[str, type] = {
    "native": NativeConstraint,
    "adaptive": AdaptiveLocate,
    "full": FullScan,
}


def default_strategies() -> tuple[Strategy, ...]:
    return (NativeConstraint(), AdaptiveLocate(), FullScan())


def build_strategies(keys, **kwargs) -> tuple[Strategy, ...]:
    """Instantiate strategies by config key, preserving order and dropping repeats."""

    built: list[Strategy] = []
    seen: set[str] = set()
    for key in keys:
        key = key.strip().lower()
        cls = STRATEGY_CLASSES.get(key)
        if cls is None:
            raise ValueError(f"Unsupported strategy key: {key}")
        if key in seen:
            continue
        seen.add(key)
        built.append(cls(**kwargs))
    return tuple(built)


__all__ = [
    "AdaptiveLocate",
    "FullScan",
    "NativeConstraint",
    "STRATEGY_CLASSES",
    "Strategy",
    "build_strategies",
    "default_strategies",
    "scan_window",
]
