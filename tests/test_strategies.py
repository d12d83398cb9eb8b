import random

import pytest

from wxextract.budget import BudgetMeter
from wxextract.errors import StrategyError
from wxextract.records import ExtractionBudget, SpatialWindow
from wxextract.strategies import AdaptiveLocate, FullScan, NativeConstraint, build_strategies
from wxextract.streams.session import StreamSession
from wxextract.streams.synthetic import SyntheticGrid
from wxextract.window import LongitudeConvention, WindowMatcher

OKC = SpatialWindow(south=35.1, north=35.7, west=-97.8, east=-97.1)


class UnsizedGrid(SyntheticGrid):
    line_count_hint = None


def attempt(strategy, grid, window, budget=None):
    budget = budget or ExtractionBudget(max_wall_clock=120.0)
    with StreamSession(grid, BudgetMeter(budget)) as session:
        return strategy.attempt(session, window, budget)


def brute_force(grid, window):
    matcher = WindowMatcher(window, LongitudeConvention.UNSIGNED_360)
    return [
        matcher.to_signed(record)
        for record in grid.records()
        if matcher.contains(record.latitude, record.longitude)
    ]


def test_full_scan_stops_at_first_line_south_of_window():
    grid = SyntheticGrid(10_000)
    first_south = next(
        index for index, record in enumerate(grid.records()) if record.latitude < OKC.south - 1e-6
    )

    outcome = attempt(FullScan(), grid, OKC)

    assert outcome.kind == "success"
    assert outcome.stats.lines_scanned == first_south + 1
    assert list(outcome.points) == brute_force(grid, OKC)
    assert grid.handles[0].killed


def test_full_scan_returns_empty_success_when_nothing_matches():
    grid = SyntheticGrid(2_000, lon_start=200.0)

    outcome = attempt(FullScan(), grid, OKC)

    assert outcome.kind == "success"
    assert outcome.points == ()
    assert outcome.stats.matched == 0


def test_full_scan_reads_to_the_end_when_ordering_is_not_descending():
    grid = SyntheticGrid(2_000, lat_start=20.0, lat_end=55.0)

    outcome = attempt(FullScan(), grid, OKC)

    assert outcome.stats.lines_scanned == 2_000
    assert list(outcome.points) == brute_force(grid, OKC)


def test_strategies_agree_on_random_windows():
    rng = random.Random(20240501)
    grid = SyntheticGrid(400, cols=25, lat_start=55.0, lat_end=20.0, lon_start=250.0, lon_end=275.0)

    for _ in range(20):
        south = rng.uniform(15.0, 58.0)
        north = min(60.0, south + rng.uniform(0.1, 5.0))
        west = rng.uniform(245.0, 275.0)
        east = west + rng.uniform(0.5, 10.0)
        window = SpatialWindow(south=south, north=north, west=west, east=east)
        expected = brute_force(grid, window)

        full = attempt(FullScan(), grid, window)
        adaptive = attempt(AdaptiveLocate(), grid, window)

        assert full.kind == adaptive.kind == "success"
        assert list(full.points) == expected
        assert list(adaptive.points) == expected


def test_adaptive_scans_far_fewer_lines_than_full_scan():
    full = attempt(FullScan(), SyntheticGrid(200_000), OKC)
    adaptive = attempt(AdaptiveLocate(), SyntheticGrid(200_000), OKC)

    assert adaptive.points == full.points
    assert len(adaptive.points) > 0
    assert adaptive.stats.probes > 0
    assert adaptive.stats.lines_scanned * 10 <= full.stats.lines_scanned


def test_adaptive_gallops_when_line_count_is_unknown():
    grid = UnsizedGrid(20_000)

    outcome = attempt(AdaptiveLocate(), grid, OKC)

    assert outcome.kind == "success"
    assert list(outcome.points) == brute_force(grid, OKC)
    assert outcome.stats.probes > 1


def test_adaptive_rejects_streams_that_are_not_latitude_descending():
    grid = SyntheticGrid(1_000, lat_start=20.0, lat_end=55.0)

    with pytest.raises(StrategyError):
        attempt(AdaptiveLocate(), grid, OKC)


def test_adaptive_needs_an_upstream_skip():
    assert AdaptiveLocate().applicable(SyntheticGrid(10), OKC)
    assert not AdaptiveLocate().applicable(SyntheticGrid(10, native_skip=False), OKC)


def test_native_constraint_uses_decoder_filter():
    grid = SyntheticGrid(5_000, native_filter=True)

    outcome = attempt(NativeConstraint(), grid, OKC)

    assert NativeConstraint().applicable(grid, OKC)
    assert list(outcome.points) == brute_force(grid, OKC)
    assert outcome.stats.lines_scanned == outcome.stats.matched


def test_native_constraint_rechecks_a_predicate_that_did_nothing():
    grid = SyntheticGrid(5_000, native_filter=True, native_noop=True)

    outcome = attempt(NativeConstraint(), grid, OKC)

    assert list(outcome.points) == brute_force(grid, OKC)
    assert outcome.stats.lines_scanned > outcome.stats.matched


def test_native_constraint_not_applicable_without_support():
    assert not NativeConstraint().applicable(SyntheticGrid(10), OKC)


def test_build_strategies_preserves_order_and_drops_repeats():
    strategies = build_strategies(["full", "adaptive", "FULL"], sample_size=10)

    assert [strategy.name for strategy in strategies] == ["full_scan", "adaptive_locate"]
    assert all(strategy.sample_size == 10 for strategy in strategies)
    with pytest.raises(ValueError):
        build_strategies(["quantum"])
