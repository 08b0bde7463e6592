import numpy as np
import pytest

from slamkit.frame import (
    Frame,
    ImageBounds,
    KeyPoint,
    compute_image_bounds,
    undistort_points,
)

K = np.array([[500.0, 0.0, 320.0], [0.0, 500.0, 240.0], [0.0, 0.0, 1.0]])
NO_DIST = np.zeros(4)
WIDTH, HEIGHT = 640, 480


def make_frame(keypoints, dist=NO_DIST, depth=None):
    return Frame(keypoints, K, dist, bf=50.0, th_depth=40.0, width=WIDTH, height=HEIGHT, depth=depth)


def distort(points, k1):
    pts = np.asarray(points, dtype=float)
    x = (pts[:, 0] - K[0, 2]) / K[0, 0]
    y = (pts[:, 1] - K[1, 2]) / K[1, 1]
    factor = 1 + k1 * (x * x + y * y)
    return np.column_stack([x * factor * K[0, 0] + K[0, 2], y * factor * K[1, 1] + K[1, 2]])


def project(point):
    return K[0, 0] * point[0] / point[2] + K[0, 2], K[1, 1] * point[1] / point[2] + K[1, 2]


def test_undistort_without_distortion_is_identity():
    points = [(10.0, 20.0), (320.0, 240.0), (600.0, 400.0)]
    assert np.allclose(undistort_points(points, K, NO_DIST), points)


def test_undistort_inverts_radial_distortion():
    original = np.array([[50.0, 60.0], [320.0, 240.0], [580.0, 420.0], [200.0, 300.0]])
    distorted = distort(original, -0.05)
    recovered = undistort_points(distorted, K, [-0.05, 0.0, 0.0, 0.0])
    assert np.allclose(recovered, original, atol=1e-2)


def test_undistort_rejects_bad_coefficient_count():
    with pytest.raises(ValueError):
        undistort_points([(1.0, 2.0)], K, [0.1, 0.2, 0.3])


def test_bounds_without_distortion_cover_image():
    assert compute_image_bounds(WIDTH, HEIGHT, K, NO_DIST) == ImageBounds(0.0, 640.0, 0.0, 480.0)


def test_bounds_with_barrel_distortion_grow_outward():
    bounds = compute_image_bounds(WIDTH, HEIGHT, K, [-0.2, 0.0, 0.0, 0.0])
    assert bounds.min_x < 0 and bounds.max_x > WIDTH
    assert bounds.min_y < 0 and bounds.max_y > HEIGHT


def test_frame_ids_increase():
    first = make_frame([KeyPoint(10, 10)])
    second = make_frame([KeyPoint(10, 10)])
    assert second.id > first.id


def test_baseline_is_bf_over_fx():
    frame = make_frame([KeyPoint(10, 10)])
    assert frame.baseline == pytest.approx(50.0 / 500.0)


def test_monocular_frame_has_no_depth():
    frame = make_frame([KeyPoint(10, 10), KeyPoint(20, 30)])
    assert list(frame.depths) == [-1.0, -1.0]
    assert list(frame.u_right) == [-1.0, -1.0]
    assert frame.map_points == [None, None]


def test_pos_in_grid_origin_and_outside():
    frame = make_frame([KeyPoint(10, 10)])
    assert frame.pos_in_grid(KeyPoint(0.0, 0.0)) == (0, 0)
    assert frame.pos_in_grid(KeyPoint(-50.0, 10.0)) is None
    assert frame.pos_in_grid(KeyPoint(10.0, 1000.0)) is None


def test_grid_holds_every_inside_keypoint_in_its_cell():
    keypoints = [KeyPoint(15.0, 22.0), KeyPoint(300.5, 100.2), KeyPoint(630.0, 470.0)]
    frame = make_frame(keypoints)
    for index, kp in enumerate(keypoints):
        cell = frame.pos_in_grid(kp)
        assert cell is not None
        assert index in frame.grid[cell[0]][cell[1]]


def test_features_in_area_radius():
    keypoints = [KeyPoint(100, 100, 0), KeyPoint(105, 102, 1), KeyPoint(300, 300, 0)]
    frame = make_frame(keypoints)
    assert sorted(frame.get_features_in_area(100, 100, 10)) == [0, 1]
    assert frame.get_features_in_area(300, 300, 2) == [2]


def test_features_in_area_levels():
    keypoints = [KeyPoint(100, 100, 0), KeyPoint(105, 102, 1), KeyPoint(102, 99, 2)]
    frame = make_frame(keypoints)
    assert sorted(frame.get_features_in_area(100, 100, 10, min_level=1)) == [1, 2]
    assert frame.get_features_in_area(100, 100, 10, max_level=0) == [0]
    assert frame.get_features_in_area(100, 100, 10, min_level=1, max_level=1) == [1]


def test_features_in_area_far_outside_is_empty():
    frame = make_frame([KeyPoint(100, 100)])
    assert frame.get_features_in_area(5000, 100, 10) == []
    assert frame.get_features_in_area(100, -5000, 10) == []


def test_set_pose_camera_centre():
    frame = make_frame([KeyPoint(10, 10)])
    Tcw = np.eye(4)
    Tcw[:3, 3] = [1.0, -2.0, 3.0]
    frame.set_pose(Tcw)
    assert np.allclose(frame.Ow, [-1.0, 2.0, -3.0])
    assert np.allclose(frame.Rwc, np.eye(3))


def test_rgbd_depth_and_right_coordinate():
    depth = np.full((HEIGHT, WIDTH), 2.0, dtype=np.float32)
    depth[50, 60] = 0.0
    frame = make_frame([KeyPoint(100.0, 200.0), KeyPoint(60.0, 50.0)], depth=depth)
    assert frame.depths[0] == pytest.approx(2.0)
    assert frame.u_right[0] == pytest.approx(100.0 - 50.0 / 2.0)
    assert frame.depths[1] == -1.0
    assert frame.u_right[1] == -1.0


def test_unproject_round_trip_with_pose():
    world = np.array([0.2, -0.1, 2.0])
    Tcw = np.eye(4)
    Tcw[:3, 3] = [0.0, 0.0, 1.0]
    camera = world + Tcw[:3, 3]
    u, v = project(camera)
    frame = make_frame([KeyPoint(u, v)])
    frame.compute_stereo_from_rgbd(np.full((HEIGHT, WIDTH), camera[2]))
    frame.set_pose(Tcw)
    assert np.allclose(frame.unproject_stereo(0), world)


def test_unproject_without_depth_is_none():
    frame = make_frame([KeyPoint(100.0, 100.0)])
    frame.set_pose(np.eye(4))
    assert frame.unproject_stereo(0) is None


def test_unproject_without_pose_raises():
    frame = make_frame([KeyPoint(100.0, 100.0)], depth=np.ones((HEIGHT, WIDTH)))
    with pytest.raises(ValueError):
        frame.unproject_stereo(0)


def test_distorted_frame_undistorts_keypoints():
    original = np.array([[80.0, 70.0], [500.0, 380.0]])
    distorted = distort(original, -0.05)
    keypoints = [KeyPoint(float(x), float(y), 3) for x, y in distorted]
    frame = make_frame(keypoints, dist=[-0.05, 0.0, 0.0, 0.0])
    recovered = np.array([(kp.x, kp.y) for kp in frame.keypoints_un])
    assert np.allclose(recovered, original, atol=1e-2)
    assert [kp.octave for kp in frame.keypoints_un] == [3, 3]