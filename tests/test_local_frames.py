"""
Tests for the spatial index and local frame estimation.
"""

import numpy as np
import pytest

from grasp_candidates import LocalFrameEstimator, PointCloud, SpatialIndex
from conftest import make_cylinder, make_plane


def test_radius_search_sorted():
    points = np.array([[0, 0, 0], [0.5, 0, 0], [0.05, 0, 0], [0, 0.02, 0]], dtype=float)
    index = SpatialIndex(PointCloud.from_array(points))

    np.testing.assert_array_equal(index.radius_search([0, 0, 0], 0.1), [0, 2, 3])
    np.testing.assert_array_equal(index.knn_search([0.5, 0, 0], 1), [1])
    assert len(index.radius_search([5, 5, 5], 0.1)) == 0


def test_select_samples_is_seeded():
    cloud = PointCloud.from_array(make_plane(size=0.1, spacing=0.005))

    first = LocalFrameEstimator.select_samples(cloud, 50, seed=3)
    second = LocalFrameEstimator.select_samples(cloud, 50, seed=3)
    other = LocalFrameEstimator.select_samples(cloud, 50, seed=4)

    np.testing.assert_array_equal(first, second)
    assert not np.array_equal(first, other)
    assert len(np.unique(first)) == 50


def test_select_samples_clamps_to_cloud_size():
    cloud = PointCloud.from_array(np.eye(3))
    samples = LocalFrameEstimator.select_samples(cloud, 10, seed=0)
    assert sorted(samples.tolist()) == [0, 1, 2]


def test_plane_frames_are_orthonormal():
    cloud = PointCloud.from_array(make_plane(size=0.1, spacing=0.005))
    index = SpatialIndex(cloud)
    estimator = LocalFrameEstimator(nn_radius=0.01)

    frames, skipped = estimator.calculate_frames(cloud, index, range(0, len(cloud), 7))

    assert skipped == 0
    for frame in frames:
        basis = np.column_stack([frame.normal, frame.curvature_axis, frame.binormal])
        np.testing.assert_allclose(basis.T @ basis, np.eye(3), atol=1e-9)
        np.testing.assert_allclose(np.cross(frame.normal, frame.curvature_axis),
                                   frame.binormal, atol=1e-9)
        np.testing.assert_allclose(frame.normal, [0, 0, 1], atol=1e-9)


def test_normal_faces_view_point():
    cloud = PointCloud.from_array(make_plane(size=0.1, spacing=0.005),
                                  view_points=[0, 0, -1])
    estimator = LocalFrameEstimator(nn_radius=0.01)
    frame = estimator.estimate_frame(cloud, SpatialIndex(cloud), 100)

    np.testing.assert_allclose(frame.normal, [0, 0, -1], atol=1e-9)


def test_cylinder_wall_normal_is_radial():
    cloud = PointCloud.from_array(make_cylinder())
    estimator = LocalFrameEstimator(nn_radius=0.01)
    # First wall ring point at angle 0, mid-height.
    wall_index = int(np.argmin(np.linalg.norm(cloud.points - [0.02, 0.0, 0.04], axis=1)))
    frame = estimator.estimate_frame(cloud, SpatialIndex(cloud), wall_index)

    assert abs(frame.normal[0]) > 0.99
    assert abs(np.dot(frame.normal, frame.curvature_axis)) < 1e-9


def test_sparse_samples_are_skipped():
    points = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [0.001, 0, 0], [0, 0.001, 0]])
    cloud = PointCloud.from_array(points)
    estimator = LocalFrameEstimator(nn_radius=0.01)

    frames, skipped = estimator.calculate_frames(cloud, SpatialIndex(cloud), [0, 1, 2])

    assert skipped == 2
    assert [f.sample_index for f in frames] == [0]


def test_frame_normal_uses_camera_of_its_point():
    """Each sample is oriented toward the camera it was seen from"""
    points = make_plane(size=0.1, spacing=0.005)
    cameras = [[0, 0, 1], [0, 0, -1]]
    sources = (points[:, 0] > 0).astype(int)
    cloud = PointCloud.from_array(points, view_points=cameras, camera_source=sources)
    index = SpatialIndex(cloud)
    estimator = LocalFrameEstimator(nn_radius=0.01)

    frames, _ = estimator.calculate_frames(cloud, index, range(0, len(cloud), 11))

    for frame in frames:
        expected = cameras[sources[frame.sample_index]][2]
        assert frame.normal[2] == pytest.approx(expected, abs=1e-9)
