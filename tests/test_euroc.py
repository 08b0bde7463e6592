import pytest

from slamkit.euroc import load_euroc_mono, load_euroc_stereo


@pytest.fixture
def times_file(tmp_path):
    path = tmp_path / "times.txt"
    path.write_text("1000000000\n\n3000000000\n", encoding="utf-8")
    return path


def test_mono_paths(times_file):
    entries = load_euroc_mono("cam0/data", times_file)
    assert [p for _, p in entries] == [
        "cam0/data/1000000000.png",
        "cam0/data/3000000000.png",
    ]


def test_mono_timestamps_in_seconds(times_file):
    entries = load_euroc_mono("cam0/data", times_file)
    assert [t for t, _ in entries] == pytest.approx([1.0, 3.0])


def test_stereo_matches_mono(times_file):
    stereo = load_euroc_stereo("cam0/data", "cam1/data", times_file)
    mono = load_euroc_mono("cam0/data", times_file)
    assert [(t, left) for t, left, _ in stereo] == mono
    assert [right for _, _, right in stereo] == [
        "cam1/data/1000000000.png",
        "cam1/data/3000000000.png",
    ]


def test_carriage_returns_are_dropped(tmp_path):
    path = tmp_path / "times.txt"
    path.write_bytes(b"2000000000\r\n")
    entries = load_euroc_mono("img", path)
    assert entries == [(pytest.approx(2.0), "img/2000000000.png")]


def test_missing_times_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_euroc_stereo("l", "r", tmp_path / "absent.txt")


def test_bad_timestamp(tmp_path):
    path = tmp_path / "times.txt"
    path.write_text("frame\n", encoding="utf-8")
    with pytest.raises(ValueError, match="frame"):
        load_euroc_mono("img", path)