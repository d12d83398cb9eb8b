"""Example runner that wires together the wxextract modules."""

from __future__ import annotations

import logging

from wxextract import ExtractionEngine, SpatialWindow
from wxextract.pipeline import summarize, to_dataframe
from wxextract.streams import SyntheticGrid


def run_example() -> None:
    """
    Extract the OKC metro box from a synthetic million-line stream twice.
    """

    logging.basicConfig(level=logging.INFO)
    grid = SyntheticGrid(1_000_000)
    engine = ExtractionEngine(lambda _: grid)
    window = SpatialWindow(south=35.1, north=35.7, west=-97.8, east=-97.1)

    outcome = engine.extract("synthetic", window, 50.0)
    print(outcome.kind, outcome.stats)
    print(summarize(outcome.points))
    print(to_dataframe(outcome.points).head())

    # Served from the cache; the grid is not reopened.
    opens = grid.opens
    engine.extract("synthetic", window, 50.0)
    print(f"opens before/after cached call: {opens}/{grid.opens}")


if __name__ == "__main__":
    run_example()
