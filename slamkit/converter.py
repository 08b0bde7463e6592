"""Conversions between descriptor matrices, poses, vectors and quaternions."""

from __future__ import annotations

import math

import numpy as np


def to_descriptor_list(descriptors):
    """Split a descriptor matrix into a list holding one row per feature."""
    array = np.asarray(descriptors)
    if array.ndim != 2:
        raise ValueError(f"descriptors must be a 2-D matrix, got shape {array.shape}")
    return [row.copy() for row in array]


def _rotation(rotation):
    matrix = np.asarray(rotation, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[0] < 3 or matrix.shape[1] < 3:
        raise ValueError(f"rotation must be at least 3x3, got shape {matrix.shape}")
    return matrix[:3, :3]


def to_se3(rotation, translation):
    """Build a 4x4 single-precision rigid transform from R and t."""
    transform = np.eye(4, dtype=np.float32)
    transform[:3, :3] = _rotation(rotation)
    transform[:3, 3] = to_vector3(translation)
    return transform


def split_se3(transform):
    """Return the rotation and translation held in a 3x4 or 4x4 transform."""
    matrix = np.asarray(transform, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[0] < 3 or matrix.shape[1] != 4:
        raise ValueError(f"transform must be 3x4 or 4x4, got shape {matrix.shape}")
    return matrix[:3, :3].copy(), matrix[:3, 3].copy()


def sim3_to_matrix(rotation, translation, scale):
    """Build the 4x4 matrix [sR t; 0 1] of a similarity transform."""
    return to_se3(float(scale) * _rotation(rotation), translation)


def to_vector3(value):
    """Return a double-precision 3-vector from an array or a point with x, y, z."""
    if all(hasattr(value, name) for name in ("x", "y", "z")):
        return np.array([value.x, value.y, value.z], dtype=np.float64)
    vector = np.asarray(value, dtype=np.float64).reshape(-1)
    if vector.size != 3:
        raise ValueError(f"expected 3 components, got {vector.size}")
    return vector


def to_quaternion(rotation):
    """Return the quaternion [x, y, z, w] of the 3x3 rotation in the input."""
    m = _rotation(rotation)
    q = [0.0, 0.0, 0.0]
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    if trace > 0.0:
        t = math.sqrt(trace + 1.0)
        w = 0.5 * t
        t = 0.5 / t
        q = [(m[2, 1] - m[1, 2]) * t, (m[0, 2] - m[2, 0]) * t, (m[1, 0] - m[0, 1]) * t]
    else:
        i = 0
        if m[1, 1] > m[0, 0]:
            i = 1
        if m[2, 2] > m[i, i]:
            i = 2
        j = (i + 1) % 3
        k = (j + 1) % 3
        t = math.sqrt(m[i, i] - m[j, j] - m[k, k] + 1.0)
        q[i] = 0.5 * t
        t = 0.5 / t
        w = (m[k, j] - m[j, k]) * t
        q[j] = (m[j, i] + m[i, j]) * t
        q[k] = (m[k, i] + m[i, k]) * t
    return [float(q[0]), float(q[1]), float(q[2]), float(w)]