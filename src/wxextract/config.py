"""Shared configuration helpers for wxextract."""

from __future__ import annotations

import os
from pathlib import Path

from wxextract.records import ExtractionBudget, SpatialWindow

REPO_ROOT = Path(__file__).resolve().parents[2]

# Oklahoma City metro, the box the MESH servers were built around.
OKC_METRO_BOUNDS = (35.1, 35.7, -97.8, -97.1)
DEFAULT_STRATEGY_ORDER = ("native", "adaptive", "full")


def _resolve_path_from_env(name: str, default: Path) -> Path:
    value = os.environ.get(name)
    if not value:
        return default
    candidate = Path(value).expanduser()
    if not candidate.is_absolute():
        candidate = (REPO_ROOT / candidate).resolve()
    return candidate


def _float_from_env(name: str, default: float) -> float:
    value = os.environ.get(name, "").strip()
    return float(value) if value else default


def _optional_int_from_env(name: str) -> int | None:
    value = os.environ.get(name, "").strip()
    return int(value) if value else None


def get_work_dir() -> Path:
    """Return the scratch directory for native window subsets."""

    return _resolve_path_from_env("WXEXTRACT_WORK_DIR", REPO_ROOT / "data")


def get_default_budget() -> ExtractionBudget:
    """Return the request budget from WXEXTRACT_MAX_SECONDS/_LINES/_BYTES."""

    return ExtractionBudget(
        max_wall_clock=_float_from_env("WXEXTRACT_MAX_SECONDS", 60.0),
        max_lines_scanned=_optional_int_from_env("WXEXTRACT_MAX_LINES"),
        max_buffered_bytes=_optional_int_from_env("WXEXTRACT_MAX_BYTES"),
    )


def get_cache_ttl() -> float:
    """Return how long successful outcomes stay cached, in seconds."""

    return _float_from_env("WXEXTRACT_CACHE_TTL", 24 * 60 * 60.0)


def get_partial_ttl() -> float:
    """Return how long partial outcomes stay cached, in seconds."""

    return _float_from_env("WXEXTRACT_PARTIAL_TTL", 300.0)


def get_sample_size() -> int:
    return max(1, int(_float_from_env("WXEXTRACT_SAMPLE_SIZE", 50)))


def get_chunk_size() -> int:
    return max(1024, int(_float_from_env("WXEXTRACT_CHUNK_SIZE", 64 * 1024)))


def get_min_value() -> float:
    """Return the default threshold (inches of hail for MESH)."""

    return _float_from_env("WXEXTRACT_MIN_VALUE", 0.75)


def get_strategy_order() -> tuple[str, ...]:
    """Return the ordered strategy keys from WXEXTRACT_STRATEGIES."""

    raw = os.environ.get("WXEXTRACT_STRATEGIES", "").strip()
    if not raw:
        return DEFAULT_STRATEGY_ORDER
    keys = [item.strip().lower() for item in raw.split(",") if item.strip()]
    return tuple(keys) or DEFAULT_STRATEGY_ORDER


def _parse_window(value: str) -> SpatialWindow:
    parts = [float(item) for item in value.split(",")]
    if len(parts) != 4:
        raise ValueError(f"Expected south,north,west,east; got {value!r}")
    south, north, west, east = parts
    return SpatialWindow(south=south, north=north, west=west, east=east)


def get_default_window() -> SpatialWindow:
    """Return the window from WXEXTRACT_WINDOW or the OKC metro box."""

    raw = os.environ.get("WXEXTRACT_WINDOW", "").strip()
    if raw:
        return _parse_window(raw)
    south, north, west, east = OKC_METRO_BOUNDS
    return SpatialWindow(south=south, north=north, west=west, east=east)


def get_decoder_binaries() -> dict[str, str | None]:
    """Return the external tool names used by the ecCodes stream factory."""

    return {
        "grib_get_data": os.environ.get("WXEXTRACT_GRIB_GET_DATA", "grib_get_data"),
        "grib_get": os.environ.get("WXEXTRACT_GRIB_GET", "grib_get") or None,
        "awk": os.environ.get("WXEXTRACT_AWK", "awk") or None,
        "wgrib2": os.environ.get("WXEXTRACT_WGRIB2") or None,
    }
