"""Two-view geometry: normalisation, homography and fundamental estimation,
triangulation, essential-matrix decomposition and motion checking."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

# Cosine of the parallax below which a point is considered well triangulated.
_MAX_COS_PARALLAX = 0.99998
# Index into the sorted parallax cosines used as the representative parallax.
_PARALLAX_RANK = 50


@dataclass
class CheckResult:
    """Outcome of checking one motion hypothesis.

    ``points3d`` holds, per keypoint of the first view, its triangulated
    position in the first camera frame (zeros where none was accepted);
    ``good`` flags the points triangulated with enough parallax; ``parallax``
    is in degrees.
    """

    n_good: int
    points3d: np.ndarray
    good: list = field(default_factory=list)
    parallax: float = 0.0


def _point_xy(point):
    if hasattr(point, "x") and hasattr(point, "y"):
        return float(point.x), float(point.y)
    values = np.asarray(point, dtype=np.float64).reshape(-1)
    if values.size < 2:
        raise ValueError(f"a point needs two coordinates, got {values.size}")
    return float(values[0]), float(values[1])


def _as_xy(points):
    if isinstance(points, np.ndarray):
        return np.asarray(points, dtype=np.float64).reshape(-1, 2)
    rows = [_point_xy(point) for point in points]
    return np.array(rows, dtype=np.float64).reshape(-1, 2)


def _paired(points1, points2):
    p1, p2 = _as_xy(points1), _as_xy(points2)
    if len(p1) != len(p2):
        raise ValueError(f"point sets differ in size: {len(p1)} and {len(p2)}")
    if len(p1) == 0:
        raise ValueError("no point correspondences given")
    return p1, p2


def normalize(points):
    """Centre points on their mean and scale them to unit mean absolute deviation.

    Returns ``(normalized, T)`` where ``T`` is the 3x3 transform taking
    homogeneous input points to the normalised ones.
    """
    pts = _as_xy(points)
    if len(pts) == 0:
        raise ValueError("cannot normalise an empty point set")
    mean = pts.mean(axis=0)
    centred = pts - mean
    deviation = np.abs(centred).mean(axis=0)
    if np.any(deviation == 0.0):
        raise ValueError("points have no spread along one axis")
    scale = 1.0 / deviation
    normalized = centred * scale

    T = np.eye(3)
    T[0, 0], T[1, 1] = scale
    T[0, 2] = -mean[0] * scale[0]
    T[1, 2] = -mean[1] * scale[1]
    return normalized, T


def _null_vector(A):
    _, _, vt = np.linalg.svd(A, full_matrices=True)
    return vt[-1]


def compute_h21(points1, points2):
    """Homography H21 with ``x2 ~ H21 x1`` by the direct linear transform."""
    p1, p2 = _paired(points1, points2)
    u1, v1 = p1[:, 0], p1[:, 1]
    u2, v2 = p2[:, 0], p2[:, 1]
    zeros, ones = np.zeros_like(u1), np.ones_like(u1)

    rows_a = np.column_stack([zeros, zeros, zeros, -u1, -v1, -ones, v2 * u1, v2 * v1, v2])
    rows_b = np.column_stack([u1, v1, ones, zeros, zeros, zeros, -u2 * u1, -u2 * v1, -u2])
    A = np.empty((2 * len(p1), 9))
    A[0::2] = rows_a
    A[1::2] = rows_b
    return _null_vector(A).reshape(3, 3)


def compute_f21(points1, points2):
    """Fundamental matrix F21 with ``x2' F21 x1 = 0`` by the eight-point method, rank 2."""
    p1, p2 = _paired(points1, points2)
    u1, v1 = p1[:, 0], p1[:, 1]
    u2, v2 = p2[:, 0], p2[:, 1]
    A = np.column_stack(
        [u2 * u1, u2 * v1, u2, v2 * u1, v2 * v1, v2, u1, v1, np.ones_like(u1)]
    )
    f_pre = _null_vector(A).reshape(3, 3)

    u, w, vt = np.linalg.svd(f_pre, full_matrices=True)
    w[2] = 0.0
    return u @ np.diag(w) @ vt


def triangulate(point1, point2, P1, P2):
    """Linear triangulation of one correspondence from two 3x4 projection matrices."""
    x1, y1 = _point_xy(point1)
    x2, y2 = _point_xy(point2)
    P1 = np.asarray(P1, dtype=np.float64)
    P2 = np.asarray(P2, dtype=np.float64)
    if P1.shape != (3, 4) or P2.shape != (3, 4):
        raise ValueError("projection matrices must be 3x4")
    A = np.vstack(
        [
            x1 * P1[2] - P1[0],
            y1 * P1[2] - P1[1],
            x2 * P2[2] - P2[0],
            y2 * P2[2] - P2[1],
        ]
    )
    x = _null_vector(A)
    with np.errstate(divide="ignore", invalid="ignore"):
        return x[:3] / x[3]


def decompose_e(E):
    """Split an essential matrix into two rotations and a unit translation.

    Returns ``(R1, R2, t)``; the four motions are ``(R1, t)``, ``(R2, t)``,
    ``(R1, -t)`` and ``(R2, -t)``.
    """
    E = np.asarray(E, dtype=np.float64)
    if E.shape != (3, 3):
        raise ValueError(f"E must be 3x3, got shape {E.shape}")
    u, _, vt = np.linalg.svd(E)
    t = u[:, 2] / np.linalg.norm(u[:, 2])

    W = np.zeros((3, 3))
    W[0, 1] = -1.0
    W[1, 0] = 1.0
    W[2, 2] = 1.0

    R1 = u @ W @ vt
    if np.linalg.det(R1) < 0:
        R1 = -R1
    R2 = u @ W.T @ vt
    if np.linalg.det(R2) < 0:
        R2 = -R2
    return R1, R2, t


def check_rt(R, t, points1, points2, matches, inliers, K, th2):
    """Triangulate the inlier matches under motion ``(R, t)`` and count the good ones.

    A point is accepted when it lies in front of both cameras (unless its
    parallax is tiny) and reprojects within squared error ``th2`` in both
    images. ``matches`` holds ``(index1, index2)`` pairs and ``inliers`` one
    flag per match.
    """
    R = np.asarray(R, dtype=np.float64)
    t = np.asarray(t, dtype=np.float64).reshape(3)
    K = np.asarray(K, dtype=np.float64)
    if R.shape != (3, 3) or K.shape != (3, 3):
        raise ValueError("R and K must be 3x3")
    keys1, keys2 = _as_xy(points1), _as_xy(points2)
    matches = list(matches)
    inliers = list(inliers)
    if len(matches) != len(inliers):
        raise ValueError("one inlier flag is needed per match")

    fx, fy, cx, cy = K[0, 0], K[1, 1], K[0, 2], K[1, 2]

    good = [False] * len(keys1)
    points3d = np.zeros((len(keys1), 3))
    cos_parallaxes = []

    P1 = np.zeros((3, 4))
    P1[:, :3] = K
    P2 = K @ np.column_stack([R, t])
    O2 = -R.T @ t

    n_good = 0
    for (i1, i2), is_inlier in zip(matches, inliers):
        if not is_inlier:
            continue
        kp1, kp2 = keys1[i1], keys2[i2]
        p3d_c1 = triangulate(kp1, kp2, P1, P2)

        if not np.all(np.isfinite(p3d_c1)):
            good[i1] = False
            continue

        normal1 = p3d_c1
        normal2 = p3d_c1 - O2
        dist1 = np.linalg.norm(normal1)
        dist2 = np.linalg.norm(normal2)
        cos_parallax = float(normal1 @ normal2 / (dist1 * dist2))

        if p3d_c1[2] <= 0 and cos_parallax < _MAX_COS_PARALLAX:
            continue

        p3d_c2 = R @ p3d_c1 + t
        if p3d_c2[2] <= 0 and cos_parallax < _MAX_COS_PARALLAX:
            continue

        with np.errstate(divide="ignore", invalid="ignore"):
            inv_z1 = 1.0 / p3d_c1[2]
            im1 = np.array([fx * p3d_c1[0] * inv_z1 + cx, fy * p3d_c1[1] * inv_z1 + cy])
            error1 = float(np.sum((im1 - kp1) ** 2))
        if not error1 <= th2:
            continue

        with np.errstate(divide="ignore", invalid="ignore"):
            inv_z2 = 1.0 / p3d_c2[2]
            im2 = np.array([fx * p3d_c2[0] * inv_z2 + cx, fy * p3d_c2[1] * inv_z2 + cy])
            error2 = float(np.sum((im2 - kp2) ** 2))
        if not error2 <= th2:
            continue

        cos_parallaxes.append(cos_parallax)
        points3d[i1] = p3d_c1
        n_good += 1
        if cos_parallax < _MAX_COS_PARALLAX:
            good[i1] = True

    if n_good > 0:
        cos_parallaxes.sort()
        chosen = cos_parallaxes[min(_PARALLAX_RANK, len(cos_parallaxes) - 1)]
        parallax = math.degrees(math.acos(max(-1.0, min(1.0, chosen))))
    else:
        parallax = 0.0

    return CheckResult(n_good=n_good, points3d=points3d, good=good, parallax=parallax)