"""Command-line entry point for wxextract."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path

import click

from wxextract.chain import FallbackChain
from wxextract.config import (
    get_decoder_binaries,
    get_default_budget,
    get_default_window,
    get_min_value,
    get_strategy_order,
    get_work_dir,
)
from wxextract.engine import ExtractionEngine
from wxextract.pipeline import MM_TO_INCHES, aggregate, summarize, to_dataframe
from wxextract.records import ExtractionBudget, SpatialWindow
from wxextract.strategies import AdaptiveLocate, FullScan, build_strategies
from wxextract.streams.eccodes import EccodesStreamFactory
from wxextract.streams.synthetic import SyntheticGrid

DEFAULT_WINDOW = get_default_window()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log strategy attempts and probes.")
def main(verbose: bool) -> None:
    """Bounded-memory window extraction over decoded GRIB2 point streams."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)-8s] [%(name)s] - %(message)s",
    )


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--south", type=float, default=DEFAULT_WINDOW.south, show_default=True)
@click.option("--north", type=float, default=DEFAULT_WINDOW.north, show_default=True)
@click.option("--west", type=float, default=DEFAULT_WINDOW.west, show_default=True)
@click.option("--east", type=float, default=DEFAULT_WINDOW.east, show_default=True)
@click.option("--threshold", type=float, default=None, help="Minimum converted value to keep.")
@click.option("--mesh/--raw", default=True, help="Convert MESH millimetres to inches.")
@click.option("--max-seconds", type=float, default=None, help="Wall-clock budget.")
@click.option("--max-lines", type=int, default=None, help="Line budget.")
@click.option(
    "--strategy",
    "strategies",
    multiple=True,
    type=click.Choice(["native", "adaptive", "full"]),
    help="Strategy order (repeatable). Defaults to WXEXTRACT_STRATEGIES.",
)
def extract(
    path: Path,
    south: float,
    north: float,
    west: float,
    east: float,
    threshold: float | None,
    mesh: bool,
    max_seconds: float | None,
    max_lines: int | None,
    strategies: tuple[str, ...],
) -> None:
    """
    Extract the points of PATH inside the window and print them as JSON.
    """

    binaries = get_decoder_binaries()
    factory = EccodesStreamFactory(
        path,
        grib_get_data=binaries["grib_get_data"],
        grib_get=binaries["grib_get"],
        awk=binaries["awk"],
        wgrib2=binaries["wgrib2"],
        work_dir=get_work_dir(),
    )
    default_budget = get_default_budget()
    budget = ExtractionBudget(
        max_wall_clock=max_seconds if max_seconds is not None else default_budget.max_wall_clock,
        max_lines_scanned=max_lines if max_lines is not None else default_budget.max_lines_scanned,
        max_buffered_bytes=default_budget.max_buffered_bytes,
    )
    engine = ExtractionEngine(
        lambda _: factory,
        strategies=build_strategies(strategies or get_strategy_order()),
        scale=MM_TO_INCHES if mesh else 1.0,
    )
    window = SpatialWindow(south=south, north=north, west=west, east=east)
    min_value = threshold if threshold is not None else get_min_value()
    outcome = engine.extract(str(path.resolve()), window, min_value, budget)

    payload = {
        "source": str(path),
        "outcome": outcome.kind,
        "bounds": {"south": south, "north": north, "west": west, "east": east},
        "stats": asdict(outcome.stats),
        "summary": summarize(outcome.points),
        "points": json.loads(to_dataframe(outcome.points).to_json(orient="records")),
    }
    if outcome.kind == "failed":
        payload["reason"] = outcome.reason.value
        payload["detail"] = outcome.detail
    click.echo(json.dumps(payload, indent=2))
    if outcome.kind == "failed":
        raise SystemExit(1)


@main.command()
@click.option("--rows", type=int, default=1_000_000, show_default=True, help="Synthetic rows.")
@click.option("--threshold", type=float, default=50.0, show_default=True)
def bench(rows: int, threshold: float) -> None:
    """
    Compare FullScan and AdaptiveLocate on the synthetic 55N-20N stream.
    """

    window = SpatialWindow(south=35.1, north=35.7, west=262.2, east=262.9)
    budget = ExtractionBudget(max_wall_clock=600.0)
    for strategy in (FullScan(), AdaptiveLocate()):
        grid = SyntheticGrid(rows)
        chain = FallbackChain([strategy], on_attempt=None)
        outcome = chain.run("synthetic", grid, window, budget)
        points = aggregate(outcome.points, threshold)
        stats = outcome.stats
        click.echo(
            f"{strategy.name:>16}: {outcome.kind}, {stats.lines_scanned} lines scanned, "
            f"{stats.probes} probes, {stats.matched} matched, {len(points)} kept, "
            f"{stats.elapsed_ms:.0f} ms"
        )
