"""Readers for TUM RGB-D benchmark image lists."""

from __future__ import annotations

from pathlib import Path

_HEADER_LINES = 3


def _fields(line, count, path, line_number):
    parts = line.split()
    if len(parts) < count:
        raise ValueError(f"{path}:{line_number}: expected {count} fields, got {len(parts)}")
    try:
        timestamp = float(parts[0])
    except ValueError as error:
        raise ValueError(f"{path}:{line_number}: bad timestamp {parts[0]!r}") from error
    return timestamp, parts


def load_tum_mono(sequence_path):
    """Read ``rgb.txt`` in a sequence directory.

    Returns a list of ``(timestamp, filename)`` pairs; filenames are relative
    to the sequence directory. The first three lines are a header.
    """
    path = Path(sequence_path) / "rgb.txt"
    entries = []
    with path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if line_number <= _HEADER_LINES or not line.strip():
                continue
            timestamp, parts = _fields(line, 2, path, line_number)
            entries.append((timestamp, parts[1]))
    return entries


def load_tum_rgbd(association_path):
    """Read an association file of ``t rgb t depth`` lines.

    Returns a list of ``(timestamp, rgb_filename, depth_filename)`` triples,
    taking the colour image's timestamp.
    """
    path = Path(association_path)
    entries = []
    with path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            timestamp, parts = _fields(line, 4, path, line_number)
            entries.append((timestamp, parts[1], parts[3]))
    return entries