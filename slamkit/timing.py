"""Per-frame tracking time statistics and playback pacing."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TrackingStatistics:
    """Median and mean of the per-frame tracking times, in seconds."""

    median: float
    mean: float


def tracking_statistics(times):
    """Summarise tracking times; the median is the upper middle element."""
    ordered = sorted(times)
    if not ordered:
        raise ValueError("no tracking times to summarise")
    return TrackingStatistics(
        median=ordered[len(ordered) // 2],
        mean=sum(ordered) / len(ordered),
    )


def frame_wait_time(timestamps, index, elapsed):
    """Seconds to wait after frame ``index`` so playback follows the timestamps."""
    count = len(timestamps)
    if not 0 <= index < count:
        raise IndexError(f"frame index {index} out of range for {count} timestamps")
    if index < count - 1:
        period = timestamps[index + 1] - timestamps[index]
    elif index > 0:
        period = timestamps[index] - timestamps[index - 1]
    else:
        period = 0.0
    return period - elapsed if elapsed < period else 0.0