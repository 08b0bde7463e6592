import math
from types import SimpleNamespace

import numpy as np
import pytest

from slamkit.converter import (
    sim3_to_matrix,
    split_se3,
    to_descriptor_list,
    to_quaternion,
    to_se3,
    to_vector3,
)


def _rot_z(angle):
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def _rot_x(angle):
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]])


def _quat_to_matrix(q):
    x, y, z, w = q
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
            [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
            [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
        ]
    )


def test_descriptor_list_rows():
    descriptors = np.arange(12, dtype=np.uint8).reshape(3, 4)
    rows = to_descriptor_list(descriptors)
    assert len(rows) == 3
    for row, expected in zip(rows, descriptors):
        assert np.array_equal(row, expected)


def test_descriptor_list_rejects_vector():
    with pytest.raises(ValueError):
        to_descriptor_list(np.arange(4))


def test_se3_round_trip():
    rotation = _rot_z(0.3) @ _rot_x(-0.7)
    translation = [1.5, -2.0, 0.25]
    transform = to_se3(rotation, translation)
    assert transform.shape == (4, 4)
    assert transform.dtype == np.float32
    assert np.allclose(transform[3], [0, 0, 0, 1])
    r, t = split_se3(transform)
    assert np.allclose(r, rotation, atol=1e-6)
    assert np.allclose(t, translation, atol=1e-6)


def test_split_rejects_bad_shape():
    with pytest.raises(ValueError):
        split_se3(np.eye(3))


def test_sim3_scales_rotation_only():
    rotation = _rot_z(1.1)
    translation = np.array([0.5, 0.5, -1.0])
    matrix = sim3_to_matrix(rotation, translation, 2.0)
    assert np.allclose(matrix[:3, :3], 2.0 * rotation, atol=1e-6)
    assert np.allclose(matrix[:3, 3], translation)
    assert np.allclose(matrix[3], [0, 0, 0, 1])


def test_to_vector3_from_point_and_column():
    point = SimpleNamespace(x=1.0, y=2.0, z=3.0)
    assert np.array_equal(to_vector3(point), [1.0, 2.0, 3.0])
    column = np.array([[4.0], [5.0], [6.0]], dtype=np.float32)
    assert np.array_equal(to_vector3(column), [4.0, 5.0, 6.0])


def test_to_vector3_rejects_wrong_size():
    with pytest.raises(ValueError):
        to_vector3([1.0, 2.0])


def test_quaternion_of_identity():
    assert to_quaternion(np.eye(3)) == [0.0, 0.0, 0.0, 1.0]


def test_quaternion_of_half_turn_about_x():
    q = to_quaternion(np.diag([1.0, -1.0, -1.0]))
    assert np.allclose(q, [1.0, 0.0, 0.0, 0.0])


@pytest.mark.parametrize("angles", [(0.2, 0.4), (2.9, -1.3), (-3.0, 3.0), (1.57, 0.0)])
def test_quaternion_reconstructs_rotation(angles):
    rotation = _rot_z(angles[0]) @ _rot_x(angles[1])
    q = to_quaternion(rotation)
    assert math.isclose(np.linalg.norm(q), 1.0, rel_tol=1e-9)
    assert np.allclose(_quat_to_matrix(q), rotation, atol=1e-9)


def test_quaternion_reads_upper_left_of_transform():
    rotation = _rot_z(0.8)
    transform = to_se3(rotation, [1.0, 2.0, 3.0])
    assert np.allclose(to_quaternion(transform), to_quaternion(rotation), atol=1e-6)