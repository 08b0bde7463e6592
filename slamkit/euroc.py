"""Readers for EuRoC MAV image lists."""

from __future__ import annotations

from pathlib import Path

_NANOSECONDS = 1e9


def _read_times(times_path):
    path = Path(times_path)
    entries = []
    with path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            name = line.strip()
            if not name:
                continue
            token = name.split()[0]
            try:
                timestamp = float(token) / _NANOSECONDS
            except ValueError as error:
                raise ValueError(f"{path}:{line_number}: bad timestamp {token!r}") from error
            entries.append((timestamp, name))
    return entries


def _image(folder, name):
    return f"{folder}/{name}.png"


def load_euroc_mono(image_path, times_path):
    """Read a times file of nanosecond timestamps.

    Returns a list of ``(timestamp_seconds, image_path)`` pairs, each image
    named after its line in the times file.
    """
    folder = str(image_path)
    return [(timestamp, _image(folder, name)) for timestamp, name in _read_times(times_path)]


def load_euroc_stereo(left_path, right_path, times_path):
    """Read a times file for a stereo pair.

    Returns a list of ``(timestamp_seconds, left_path, right_path)`` triples.
    """
    left, right = str(left_path), str(right_path)
    return [
        (timestamp, _image(left, name), _image(right, name))
        for timestamp, name in _read_times(times_path)
    ]