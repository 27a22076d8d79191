import math

import pytest

from frameperfect.schemas.project import ScanRange
from frameperfect.services.sampler import (
    estimate_frame_count,
    format_timestamp,
    sample_timestamps,
    scan_range_bounds,
)


class TestScanRangeBounds:
    @pytest.mark.parametrize(
        "scan_range, expected",
        [
            ("full", (0.0, 100.0)),
            ("first-half", (0.0, 50.0)),
            ("second-half", (50.0, 100.0)),
            ("first-quarter", (0.0, 25.0)),
            ("last-quarter", (75.0, 100.0)),
        ],
    )
    def test_range_windows(self, scan_range, expected):
        assert scan_range_bounds(100.0, scan_range) == expected

    def test_rejects_non_positive_duration(self):
        with pytest.raises(ValueError):
            scan_range_bounds(0.0, ScanRange.FULL)

    def test_rejects_unknown_range(self):
        with pytest.raises(ValueError):
            scan_range_bounds(10.0, "middle-third")


class TestSampleTimestamps:
    def test_full_range_every_two_seconds(self):
        assert sample_timestamps(10.0, "full", 2.0) == [0.0, 2.0, 4.0, 6.0, 8.0]

    def test_first_half_stops_before_midpoint(self):
        assert sample_timestamps(100.0, "first-half", 10.0) == [0.0, 10.0, 20.0, 30.0, 40.0]

    def test_last_quarter_starts_at_three_quarters(self):
        assert sample_timestamps(100.0, "last-quarter", 10.0) == [75.0, 85.0, 95.0]

    def test_last_step_is_clamped_below_end(self):
        result = sample_timestamps(10.0, "full", 3.32)
        assert result == pytest.approx([0.0, 3.32, 6.64, 9.9])

    def test_interval_longer_than_range_gives_single_sample(self):
        assert sample_timestamps(10.0, "first-quarter", 5.0) == [0.0]

    def test_tiny_range_keeps_sample_inside(self):
        result = sample_timestamps(0.1, "full", 1.0)
        assert result == [0.0]

    @pytest.mark.parametrize(
        "duration, scan_range, interval",
        [
            (10.0, "full", 2.0),
            (100.0, "first-half", 10.0),
            (10.0, "full", 3.32),
            (37.3, "second-half", 0.7),
            (61.0, "last-quarter", 0.07),
            (5.0, "first-quarter", 0.15),
        ],
    )
    def test_ordered_inside_window_with_ceil_length(self, duration, scan_range, interval):
        start, end = scan_range_bounds(duration, scan_range)
        result = sample_timestamps(duration, scan_range, interval)

        assert len(result) == math.ceil((end - start) / interval)
        assert all(start <= t < end for t in result)
        assert all(a < b for a, b in zip(result, result[1:]))

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            sample_timestamps(10.0, "full", 0.0)


class TestHelpers:
    def test_estimate_frame_count_floors(self):
        assert estimate_frame_count(61.0, 2.0) == 30

    def test_estimate_frame_count_without_duration(self):
        assert estimate_frame_count(0.0, 2.0) == 0

    def test_format_timestamp(self):
        assert format_timestamp(75.5) == "01:15"
        assert format_timestamp(0.0) == "00:00"
