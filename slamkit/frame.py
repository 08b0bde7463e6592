"""Camera frames: undistorted keypoints, a search grid, depth and pose."""

from __future__ import annotations

import itertools
import math
from dataclasses import dataclass, replace

import numpy as np

from slamkit.converter import split_se3

_UNDISTORT_ITERATIONS = 5
GRID_COLS = 64
GRID_ROWS = 48


@dataclass(frozen=True)
class KeyPoint:
    """An image feature at pixel ``(x, y)`` found at pyramid level ``octave``."""

    x: float
    y: float
    octave: int = 0


@dataclass(frozen=True)
class ImageBounds:
    """The region of the undistorted image plane covered by the image."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float


def _c_round(value):
    """Round half away from zero."""
    return math.floor(value + 0.5) if value >= 0 else math.ceil(value - 0.5)


def _calibration(K):
    matrix = np.asarray(K, dtype=np.float64)
    if matrix.shape != (3, 3):
        raise ValueError(f"K must be 3x3, got shape {matrix.shape}")
    return matrix[0, 0], matrix[1, 1], matrix[0, 2], matrix[1, 2]


def _coefficients(dist_coef):
    values = np.asarray(dist_coef, dtype=np.float64).reshape(-1)
    if values.size not in (4, 5, 8):
        raise ValueError(f"expected 4, 5 or 8 distortion coefficients, got {values.size}")
    full = np.zeros(8)
    full[: values.size] = values
    return full


def undistort_points(points, K, dist_coef):
    """Remove lens distortion from pixel points; the result is in pixels again.

    ``dist_coef`` holds ``k1, k2, p1, p2[, k3[, k4, k5, k6]]``.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    fx, fy, cx, cy = _calibration(K)
    k1, k2, p1, p2, k3, k4, k5, k6 = _coefficients(dist_coef)

    x0 = (pts[:, 0] - cx) / fx
    y0 = (pts[:, 1] - cy) / fy
    x, y = x0.copy(), y0.copy()
    for _ in range(_UNDISTORT_ITERATIONS):
        r2 = x * x + y * y
        icdist = (1 + ((k6 * r2 + k5) * r2 + k4) * r2) / (1 + ((k3 * r2 + k2) * r2 + k1) * r2)
        delta_x = 2 * p1 * x * y + p2 * (r2 + 2 * x * x)
        delta_y = p1 * (r2 + 2 * y * y) + 2 * p2 * x * y
        x = (x0 - delta_x) * icdist
        y = (y0 - delta_y) * icdist
    return np.column_stack([x * fx + cx, y * fy + cy])


def compute_image_bounds(width, height, K, dist_coef):
    """Return the bounds of an image of ``width`` x ``height`` after undistortion."""
    coefficients = np.asarray(dist_coef, dtype=np.float64).reshape(-1)
    if coefficients.size == 0 or coefficients[0] == 0.0:
        return ImageBounds(0.0, float(width), 0.0, float(height))
    corners = undistort_points(
        [(0.0, 0.0), (width, 0.0), (0.0, height), (width, height)], K, dist_coef
    )
    return ImageBounds(
        min_x=float(min(corners[0, 0], corners[2, 0])),
        max_x=float(max(corners[1, 0], corners[3, 0])),
        min_y=float(min(corners[0, 1], corners[1, 1])),
        max_y=float(max(corners[2, 1], corners[3, 1])),
    )


class Frame:
    """A camera frame built from extracted keypoints.

    Monocular frames carry no depth; pass ``depth`` (an image of metric depth
    values, indexed ``[row, column]``) for RGB-D input.
    """

    _ids = itertools.count()

    def __init__(
        self,
        keypoints,
        K,
        dist_coef,
        bf,
        th_depth,
        width,
        height,
        timestamp=0.0,
        depth=None,
        descriptors=None,
        grid_cols=GRID_COLS,
        grid_rows=GRID_ROWS,
    ):
        self.id = next(Frame._ids)
        self.timestamp = float(timestamp)
        self.K = np.array(K, dtype=np.float64)
        self.dist_coef = np.array(dist_coef, dtype=np.float64).reshape(-1)
        self.fx, self.fy, self.cx, self.cy = _calibration(self.K)
        self.bf = float(bf)
        self.baseline = self.bf / self.fx
        self.th_depth = float(th_depth)
        self.descriptors = None if descriptors is None else np.array(descriptors)
        self.grid_cols = int(grid_cols)
        self.grid_rows = int(grid_rows)

        self.keypoints = list(keypoints)
        self.keypoints_un = self._undistort_keypoints()
        count = len(self.keypoints)
        self.u_right = np.full(count, -1.0)
        self.depths = np.full(count, -1.0)
        self.map_points = [None] * count
        self.outliers = [False] * count

        self.bounds = compute_image_bounds(width, height, self.K, self.dist_coef)
        self.grid_element_width_inv = self.grid_cols / (self.bounds.max_x - self.bounds.min_x)
        self.grid_element_height_inv = self.grid_rows / (self.bounds.max_y - self.bounds.min_y)

        self.Tcw = None
        self.Rcw = self.Rwc = self.tcw = self.Ow = None

        if depth is not None:
            self.compute_stereo_from_rgbd(depth)
        self.grid = self._assign_features_to_grid()

    def __len__(self):
        return len(self.keypoints)

    def _undistort_keypoints(self):
        if not self.keypoints or self.dist_coef.size == 0 or self.dist_coef[0] == 0.0:
            return list(self.keypoints)
        undistorted = undistort_points(
            [(kp.x, kp.y) for kp in self.keypoints], self.K, self.dist_coef
        )
        return [
            replace(kp, x=float(ux), y=float(uy))
            for kp, (ux, uy) in zip(self.keypoints, undistorted)
        ]

    def _assign_features_to_grid(self):
        grid = [[[] for _ in range(self.grid_rows)] for _ in range(self.grid_cols)]
        for index, kp in enumerate(self.keypoints_un):
            cell = self.pos_in_grid(kp)
            if cell is not None:
                grid[cell[0]][cell[1]].append(index)
        return grid

    def pos_in_grid(self, keypoint):
        """Return the grid cell ``(column, row)`` of a keypoint, or None outside."""
        pos_x = _c_round((keypoint.x - self.bounds.min_x) * self.grid_element_width_inv)
        pos_y = _c_round((keypoint.y - self.bounds.min_y) * self.grid_element_height_inv)
        if not (0 <= pos_x < self.grid_cols and 0 <= pos_y < self.grid_rows):
            return None
        return pos_x, pos_y

    def get_features_in_area(self, x, y, r, min_level=-1, max_level=-1):
        """Return indices of undistorted keypoints within the square of half-side ``r``.

        Levels are checked when ``min_level > 0`` or ``max_level >= 0``.
        """
        min_cell_x = max(0, math.floor((x - self.bounds.min_x - r) * self.grid_element_width_inv))
        if min_cell_x >= self.grid_cols:
            return []
        max_cell_x = min(
            self.grid_cols - 1,
            math.ceil((x - self.bounds.min_x + r) * self.grid_element_width_inv),
        )
        if max_cell_x < 0:
            return []
        min_cell_y = max(0, math.floor((y - self.bounds.min_y - r) * self.grid_element_height_inv))
        if min_cell_y >= self.grid_rows:
            return []
        max_cell_y = min(
            self.grid_rows - 1,
            math.ceil((y - self.bounds.min_y + r) * self.grid_element_height_inv),
        )
        if max_cell_y < 0:
            return []

        check_levels = min_level > 0 or max_level >= 0
        found = []
        for column in self.grid[min_cell_x : max_cell_x + 1]:
            for cell in column[min_cell_y : max_cell_y + 1]:
                for index in cell:
                    kp = self.keypoints_un[index]
                    if check_levels:
                        if kp.octave < min_level:
                            continue
                        if max_level >= 0 and kp.octave > max_level:
                            continue
                    if abs(kp.x - x) < r and abs(kp.y - y) < r:
                        found.append(index)
        return found

    def set_pose(self, Tcw):
        """Set the world-to-camera transform and derive rotation and camera centre."""
        self.Tcw = np.array(Tcw, dtype=np.float64)
        self.Rcw, self.tcw = split_se3(self.Tcw)
        self.Rwc = self.Rcw.T
        self.Ow = -self.Rwc @ self.tcw

    def compute_stereo_from_rgbd(self, depth):
        """Fill depths and virtual right coordinates from a depth image."""
        depth_image = np.asarray(depth)
        self.u_right = np.full(len(self.keypoints), -1.0)
        self.depths = np.full(len(self.keypoints), -1.0)
        for index, (kp, kp_un) in enumerate(zip(self.keypoints, self.keypoints_un)):
            d = float(depth_image[int(kp.y), int(kp.x)])
            if d > 0:
                self.depths[index] = d
                self.u_right[index] = kp_un.x - self.bf / d

    def unproject_stereo(self, index):
        """Return the world point of keypoint ``index``, or None if it has no depth."""
        z = self.depths[index]
        if not z > 0:
            return None
        if self.Tcw is None:
            raise ValueError("frame pose has not been set")
        kp = self.keypoints_un[index]
        x = (kp.x - self.cx) * z / self.fx
        y = (kp.y - self.cy) * z / self.fy
        return self.Rwc @ np.array([x, y, z]) + self.Ow