"""Post-extraction helpers for thresholding and tabulating matched points."""

from __future__ import annotations

from .aggregate import MM_TO_INCHES, aggregate
from .frame import summarize, to_dataframe

__all__ = ["MM_TO_INCHES", "aggregate", "summarize", "to_dataframe"]
