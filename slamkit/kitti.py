"""Readers for KITTI odometry sequences."""

from __future__ import annotations

from pathlib import Path

_LEFT_DIR = "image_0"
_RIGHT_DIR = "image_1"


def _read_times(sequence_path):
    path = Path(sequence_path) / "times.txt"
    timestamps = []
    with path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            token = line.split()[0]
            try:
                timestamps.append(float(token))
            except ValueError as error:
                raise ValueError(f"{path}:{line_number}: bad timestamp {token!r}") from error
    return timestamps


def _image_name(index):
    return f"{index:06d}.png"


def load_kitti_mono(sequence_path):
    """Read ``times.txt`` of a sequence directory.

    Returns a list of ``(timestamp, image_path)`` pairs, the images being the
    zero-padded, numbered files of the left camera directory ``image_0``.
    """
    base = Path(sequence_path)
    return [
        (timestamp, str(base / _LEFT_DIR / _image_name(index)))
        for index, timestamp in enumerate(_read_times(base))
    ]


def load_kitti_stereo(sequence_path):
    """Read ``times.txt`` of a sequence directory for a stereo pair.

    Returns a list of ``(timestamp, left_path, right_path)`` triples, from the
    ``image_0`` and ``image_1`` directories.
    """
    base = Path(sequence_path)
    return [
        (
            timestamp,
            str(base / _LEFT_DIR / _image_name(index)),
            str(base / _RIGHT_DIR / _image_name(index)),
        )
        for index, timestamp in enumerate(_read_times(base))
    ]