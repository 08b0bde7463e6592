# slamkit

Geometry and bookkeeping pieces for feature-based visual SLAM, built on NumPy.

## Modules

- `slamkit.converter`: pose and vector helpers.
  - `to_se3(rotation, translation)` builds a 4x4 single-precision rigid transform.
  - `split_se3(transform)` returns the rotation and translation of a 3x4 or 4x4 transform.
  - `sim3_to_matrix(rotation, translation, scale)` builds `[sR t; 0 1]`.
  - `to_vector3(value)` takes an array or any object with `x`, `y`, `z`.
  - `to_quaternion(rotation)` returns `[x, y, z, w]`.
  - `to_descriptor_list(descriptors)` splits a descriptor matrix into its rows.
- `slamkit.frame`: camera frames built from keypoints you have already extracted.
  - `KeyPoint(x, y, octave)` and `ImageBounds(min_x, max_x, min_y, max_y)`.
  - `undistort_points(points, K, dist_coef)` removes radial and tangential distortion
    (coefficients `k1, k2, p1, p2[, k3[, k4, k5, k6]]`).
  - `compute_image_bounds(width, height, K, dist_coef)` gives the undistorted image region.
  - `Frame` undistorts its keypoints, places them in a 64x48 search grid, and offers
    `pos_in_grid`, `get_features_in_area`, `set_pose`, `compute_stereo_from_rgbd`
    (depth from an RGB-D depth image) and `unproject_stereo` (world point of a keypoint
    with depth). Each frame gets an increasing `id`.
- `slamkit.two_view`: two-view geometry. `normalize`, `compute_h21` (homography by DLT),
  `compute_f21` (rank-2 fundamental matrix by the eight-point method), `triangulate`,
  `decompose_e`, and `check_rt`, which triangulates matches under a motion hypothesis
  and returns a `CheckResult` with the count of good points, their positions, flags and
  the parallax in degrees.
- `slamkit.initializer`: `Initializer` runs monocular map initialization from two views.
  RANSAC estimates of a homography and a fundamental matrix compete on score; the
  chosen model is decomposed into a motion and triangulated points, returned as a
  `Reconstruction`, or `None` when the views do not allow a reliable start. RANSAC
  sampling is seeded (`seed=0` by default), so results are repeatable.
- Dataset list readers:
  - `slamkit.tum`: `load_tum_mono(sequence_path)` reads `rgb.txt` into
    `(timestamp, filename)` pairs; `load_tum_rgbd(association_path)` reads
    `(timestamp, rgb_filename, depth_filename)` triples.
  - `slamkit.kitti`: `load_kitti_mono` and `load_kitti_stereo` read `times.txt` and pair
    each timestamp with `image_0/NNNNNN.png` (and `image_1/NNNNNN.png`).
  - `slamkit.euroc`: `load_euroc_mono` and `load_euroc_stereo` read nanosecond
    timestamps, convert them to seconds and name each image after its line.
- `slamkit.timing`: `tracking_statistics(times)` returns a `TrackingStatistics` with the
  median (upper middle element) and mean; `frame_wait_time(timestamps, index, elapsed)`
  gives how long to wait so playback follows the recorded timestamps.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example: two-view initialization

```python
import numpy as np
from slamkit.initializer import Initializer

K = np.array([[500.0, 0, 320], [0, 500.0, 240], [0, 0, 1]])
# reference_points and current_points are (N, 2) arrays of undistorted keypoints.
# matches12[i] is the index in current_points matched to reference point i, or -1.
initializer = Initializer(reference_points, K, sigma=1.0, iterations=200)
result = initializer.initialize(current_points, matches12)
if result is not None:
    print(result.R21, result.t21, sum(result.triangulated))
```

## Example: a frame and a feature search

```python
import numpy as np
from slamkit.frame import Frame, KeyPoint

K = np.array([[500.0, 0, 320], [0, 500.0, 240], [0, 0, 1]])
keypoints = [KeyPoint(100.0, 120.0), KeyPoint(102.0, 118.0, octave=1)]
frame = Frame(keypoints, K, [0, 0, 0, 0], bf=40.0, th_depth=40.0, width=640, height=480)
print(frame.get_features_in_area(101.0, 119.0, 5.0))
```

## Example: loading a KITTI sequence

```python
from slamkit.kitti import load_kitti_stereo

pairs = load_kitti_stereo("/data/kitti/sequences/00")
for timestamp, left_path, right_path in pairs[:3]:
    print(timestamp, left_path, right_path)
```

## What this package does not do

slamkit holds building blocks only. It does not read or decode images, extract or
match ORB features, run a tracking loop, keep a map or keyframe database, perform
bundle adjustment or loop closure, draw frames or status overlays, or provide any
command-line program or viewer. Dataset readers return file names and timestamps;
loading the images is left to you.