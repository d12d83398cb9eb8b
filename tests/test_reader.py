import pytest

from wxextract.budget import BudgetMeter
from wxextract.errors import BudgetExceeded, DecodeUnavailable
from wxextract.records import ExtractionBudget, PointRecord
from wxextract.streams.reader import GridStreamReader
from wxextract.streams.synthetic import IteratorStream


def make_reader(*blobs, chunk_size=7, status=0, budget=None):
    meter = BudgetMeter(budget or ExtractionBudget(max_wall_clock=60.0))
    handle = IteratorStream(iter(blobs), chunk_size=chunk_size, status=status)
    return GridStreamReader(handle, meter, chunk_size=chunk_size), meter, handle


def test_reader_reassembles_lines_split_across_chunks():
    reader, meter, _ = make_reader(
        b"Latitude, Longitude, Value\n35.5 262.5 10\n35.4 262.5 2",
        b"0\n35.3 262.5 30\n",
    )

    records = list(reader)

    assert records == [
        PointRecord(35.5, 262.5, 10.0),
        PointRecord(35.4, 262.5, 20.0),
        PointRecord(35.3, 262.5, 30.0),
    ]
    assert reader.header == "Latitude, Longitude, Value"
    assert reader.lines_scanned == 3
    assert meter.lines == 3


def test_reader_without_header_parses_first_line():
    reader, _, _ = make_reader(b"35.5 262.5 10\n35.4,262.5,12.5\n")

    records = list(reader)

    assert reader.header is None
    assert records == [PointRecord(35.5, 262.5, 10.0), PointRecord(35.4, 262.5, 12.5)]


def test_reader_counts_malformed_lines_and_keeps_going():
    reader, meter, _ = make_reader(
        b"35.5 262.5 1\n35.4 262.5\n\nfoo bar baz\n35.3 262.5 nan\n1 2 3 4\n35.2 262.5 2",
        chunk_size=64,
    )

    records = list(reader)

    assert [record.value for record in records] == [1.0, 2.0]
    assert reader.malformed == 4
    assert meter.malformed == 4
    assert reader.lines_scanned == 6


def test_reader_drops_oversized_unterminated_line():
    reader, _, _ = make_reader(b"35.0 262.5 1\n" + b"9" * 5000, chunk_size=8192)

    records = list(reader)

    assert records == [PointRecord(35.0, 262.5, 1.0)]
    assert reader.malformed == 1
    assert reader.lines_scanned == 1


def test_line_budget_stops_with_exactly_n_lines_scanned():
    body = b"".join(b"35.0 262.5 %d\n" % index for index in range(10))
    budget = ExtractionBudget(max_wall_clock=60.0, max_lines_scanned=4)
    reader, meter, _ = make_reader(body, budget=budget)

    seen = []
    with pytest.raises(BudgetExceeded) as excinfo:
        for record in reader:
            seen.append(record)

    assert excinfo.value.limit == "lines"
    assert len(seen) == 4
    assert meter.lines == 4


def test_byte_budget_is_charged_before_buffering():
    body = b"".join(b"35.0 262.5 %d\n" % index for index in range(10))
    budget = ExtractionBudget(max_wall_clock=60.0, max_buffered_bytes=30)
    reader, meter, _ = make_reader(body, budget=budget)

    with pytest.raises(BudgetExceeded) as excinfo:
        list(reader)

    assert excinfo.value.limit == "bytes"
    assert meter.bytes_read <= 30


def test_skip_discards_lines_without_scanning_them():
    reader, meter, _ = make_reader(b"Latitude Longitude Value\n3 1 1\n2 1 1\n1 1 1\n")

    reader.skip(2)
    records = list(reader)

    assert records == [PointRecord(1.0, 1.0, 1.0)]
    assert reader.lines_skipped == 2
    assert meter.lines_skipped == 2
    assert meter.lines == 1


def test_reader_is_single_pass():
    reader, _, _ = make_reader(b"1 1 1\n")
    list(reader)

    with pytest.raises(RuntimeError):
        iter(reader)
    with pytest.raises(RuntimeError):
        reader.skip(1)


def test_terminate_is_idempotent_and_stops_iteration():
    reader, _, handle = make_reader(b"1 1 1\n2 2 2\n")

    reader.terminate()
    reader.terminate()

    assert handle.kill_calls == 1
    assert handle.killed
    with pytest.raises(BudgetExceeded):
        list(reader)


def test_context_manager_kills_producer_on_early_exit():
    reader, _, handle = make_reader(b"1 1 1\n2 2 2\n3 3 3\n", chunk_size=6)

    with reader:
        first = next(iter(reader))

    assert first == PointRecord(1.0, 1.0, 1.0)
    assert handle.killed


def test_nonzero_exit_raises_decode_unavailable():
    reader, _, _ = make_reader(b"1 1 1\n", status=2)

    with pytest.raises(DecodeUnavailable, match="status 2"):
        list(reader)


class LateKillStream(IteratorStream):
    """Producer whose kill arrives right as it finishes on its own."""

    reader = None

    def read(self, size):
        chunk = super().read(size)
        if not chunk:
            self.reader.terminate()
        return chunk


def test_kill_after_producer_exit_is_not_a_complete_scan():
    meter = BudgetMeter(ExtractionBudget(max_wall_clock=60.0))
    handle = LateKillStream(iter([b"1 1 1\n2 2 2\n"]))
    reader = GridStreamReader(handle, meter)
    handle.reader = reader

    with pytest.raises(BudgetExceeded):
        list(reader)
    assert not handle.killed
