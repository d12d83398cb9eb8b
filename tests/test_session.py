import pytest

from wxextract.budget import BudgetMeter
from wxextract.records import ExtractionBudget
from wxextract.streams.session import StreamSession
from wxextract.streams.synthetic import SyntheticGrid


def make_session(grid, **budget):
    meter = BudgetMeter(ExtractionBudget(max_wall_clock=budget.pop("max_wall_clock", 60.0), **budget))
    return StreamSession(grid, meter)


def test_probe_reads_one_record_and_kills_the_producer():
    grid = SyntheticGrid(1000, lat_start=50.0, lat_end=40.0)

    with make_session(grid) as session:
        latitude = session.probe(500)
        assert session.meter.probes == 1
        assert session.meter.lines == 1

    assert latitude == pytest.approx(50.0 - 500 * 10.0 / 999, abs=1e-6)
    assert grid.skips == [500]
    assert grid.handles[0].killed


def test_probe_past_end_of_stream_returns_none():
    grid = SyntheticGrid(10)

    with make_session(grid) as session:
        assert session.probe(10) is None


def test_open_without_native_skip_discards_lines_in_python():
    grid = SyntheticGrid(100, native_skip=False)

    with make_session(grid) as session:
        with session.open(5) as reader:
            first = next(iter(reader))
        assert session.meter.lines_skipped == 5
        assert session.meter.lines == 1

    assert grid.skips == [0]
    assert first == next(record for index, record in enumerate(grid.records()) if index == 5)


def test_closing_session_terminates_every_reader():
    grid = SyntheticGrid(50_000)

    session = make_session(grid)
    for skip in (0, 10, 20):
        next(iter(session.open(skip)))
    session.close()

    assert session.opened == 3
    assert all(handle.kill_calls == 1 for handle in grid.handles)
    with pytest.raises(RuntimeError):
        session.open()


def test_stats_reflect_the_shared_meter():
    grid = SyntheticGrid(100)

    with make_session(grid) as session:
        list(session.open())
        stats = session.stats("full_scan", 7)

    assert stats.strategy_name == "full_scan"
    assert stats.lines_scanned == 100
    assert stats.matched == 7
    assert stats.bytes_read == grid.bytes_served
