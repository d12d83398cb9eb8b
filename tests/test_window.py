import pytest

from wxextract.records import PointRecord, SpatialWindow
from wxextract.window import (
    LongitudeConvention,
    WindowMatcher,
    classify_stream,
    infer_convention,
    to_signed,
)

OKC = SpatialWindow(south=35.1, north=35.7, west=-97.8, east=-97.1)


def test_infer_convention():
    assert infer_convention([10.0, 262.5]) is LongitudeConvention.UNSIGNED_360
    assert infer_convention([-97.5, 10.0, 180.0]) is LongitudeConvention.SIGNED_180
    assert infer_convention([]) is LongitudeConvention.SIGNED_180


def test_classify_stream_replays_the_sample():
    records = [PointRecord(35.0, 200.0 + index, float(index)) for index in range(60)]

    convention, stream = classify_stream(iter(records), sample_size=10)

    assert convention is LongitudeConvention.UNSIGNED_360
    assert list(stream) == records


def test_signed_window_against_unsigned_stream():
    matcher = WindowMatcher(OKC, LongitudeConvention.UNSIGNED_360)

    assert matcher.contains(35.5, 262.5)
    assert matcher.contains(35.1, 262.2)
    assert not matcher.contains(35.5, 262.95)
    assert not matcher.contains(35.5, -97.5)
    assert matcher.to_signed(PointRecord(35.5, 262.5, 1.0)) == PointRecord(35.5, -97.5, 1.0)


def test_unsigned_window_against_signed_stream():
    matcher = WindowMatcher(SpatialWindow(35.1, 35.7, 262.2, 262.9), LongitudeConvention.SIGNED_180)

    assert matcher.contains(35.5, -97.5)
    assert not matcher.contains(35.5, 262.5)
    record = PointRecord(35.5, -97.5, 1.0)
    assert matcher.to_signed(record) is record


def test_window_across_prime_meridian_in_unsigned_stream():
    matcher = WindowMatcher(SpatialWindow(-5.0, 5.0, -10.0, 10.0), LongitudeConvention.UNSIGNED_360)

    assert matcher.contains(0.0, 355.0)
    assert matcher.contains(0.0, 5.0)
    assert matcher.contains(0.0, 0.0)
    assert not matcher.contains(0.0, 180.0)


def test_window_across_antimeridian():
    window = SpatialWindow(-5.0, 5.0, 170.0, -170.0)
    signed = WindowMatcher(window, LongitudeConvention.SIGNED_180)
    unsigned = WindowMatcher(window, LongitudeConvention.UNSIGNED_360)

    assert signed.contains(0.0, 175.0)
    assert signed.contains(0.0, -175.0)
    assert not signed.contains(0.0, 0.0)
    assert unsigned.contains(0.0, 185.0)
    assert unsigned.contains(0.0, 175.0)
    assert not unsigned.contains(0.0, 200.0)


def test_whole_globe_window_matches_everything():
    matcher = WindowMatcher(SpatialWindow(-90.0, 90.0, -180.0, 180.0), LongitudeConvention.UNSIGNED_360)

    assert matcher.contains(0.0, 0.0)
    assert matcher.contains(-45.0, 359.9)


def test_edges_are_inclusive_within_tolerance():
    matcher = WindowMatcher(OKC, LongitudeConvention.SIGNED_180)

    assert matcher.contains(35.1 - 1e-7, -97.8 - 1e-7)
    assert matcher.contains(35.7 + 1e-7, -97.1 + 1e-7)
    assert not matcher.is_south_of(35.1 - 1e-7)
    assert matcher.is_south_of(35.1 - 1e-5)


def test_to_signed():
    assert to_signed(262.5) == -97.5
    assert to_signed(180.0) == 180.0
    assert to_signed(-97.5) == -97.5


@pytest.mark.parametrize(
    "bounds",
    [
        (35.7, 35.1, -97.8, -97.1),
        (35.1, 35.1, -97.8, -97.1),
        (35.1, 95.0, -97.8, -97.1),
        (float("nan"), 35.7, -97.8, -97.1),
        (35.1, 35.7, float("inf"), -97.1),
    ],
)
def test_invalid_windows_are_rejected(bounds):
    south, north, west, east = bounds
    with pytest.raises(ValueError):
        SpatialWindow(south=south, north=north, west=west, east=east)


def test_canonical_folds_longitudes():
    canonical = SpatialWindow(35.1, 35.7, 262.2, 262.9).canonical()

    assert canonical.west == pytest.approx(-97.8)
    assert canonical.east == pytest.approx(-97.1)
    assert SpatialWindow(0.0, 1.0, 0.0, 360.0).canonical().west == -180.0
