"""Timestamp sampling over a scan range.

Pure functions: no media I/O, so the sampling plan for a project can be
computed (and tested) before any frame is grabbed.
"""

import math

from frameperfect.schemas.project import ScanRange

DEFAULT_EPSILON = 0.1

# range -> (start fraction, end fraction) of the media duration
_RANGE_FRACTIONS: dict[ScanRange, tuple[float, float]] = {
    ScanRange.FULL: (0.0, 1.0),
    ScanRange.FIRST_HALF: (0.0, 0.5),
    ScanRange.SECOND_HALF: (0.5, 1.0),
    ScanRange.FIRST_QUARTER: (0.0, 0.25),
    ScanRange.LAST_QUARTER: (0.75, 1.0),
}


def scan_range_bounds(duration: float, scan_range: ScanRange | str) -> tuple[float, float]:
    """Map a range selector to a ``[start, end)`` window of ``[0, duration)``."""
    if duration <= 0:
        raise ValueError(f"duration must be positive, got {duration}")

    start_frac, end_frac = _RANGE_FRACTIONS[ScanRange(scan_range)]
    return duration * start_frac, duration * end_frac


def sample_timestamps(
    duration: float,
    scan_range: ScanRange | str,
    interval: float,
    epsilon: float = DEFAULT_EPSILON,
) -> list[float]:
    """Return the ordered seek timestamps for a scan.

    Timestamps are ``start + k * interval`` for every ``k`` that stays below
    ``end``, so the count is ``ceil((end - start) / interval)``. Each value is
    clamped to ``end - epsilon`` because decoders commonly fail to seek to the
    exact end of the media. The effective epsilon never exceeds half the
    interval or half the window, which keeps the sequence strictly increasing
    and inside ``[start, end)``.
    """
    if interval <= 0:
        raise ValueError(f"interval must be positive, got {interval}")

    start, end = scan_range_bounds(duration, scan_range)
    span = end - start
    count = math.ceil(span / interval)
    margin = min(epsilon, interval / 2, span / 2)
    ceiling = end - margin

    timestamps: list[float] = []
    for k in range(count):
        t = start + k * interval
        if t >= end:
            break
        timestamps.append(min(t, ceiling))
    return timestamps


def estimate_frame_count(duration: float, interval: float) -> int:
    """Rough frame estimate for the full media, shown before a scan starts."""
    if duration <= 0 or interval <= 0:
        return 0
    return math.floor(duration / interval)


def format_timestamp(seconds: float) -> str:
    """Format seconds as ``MM:SS``."""
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins:02d}:{secs:02d}"
