"""
Tests for the finger hand model and the parallel hand search.
"""

import numpy as np
import pytest

from grasp_candidates import (
    FingerHand,
    HandGeometry,
    HandSearchSampler,
    LocalFrameEstimator,
    PointCloud,
    PointCloudPreprocessor,
    SearchConfig,
    SpatialIndex,
)
from grasp_candidates.parallel import parallel_map, partition
from conftest import make_plane

HAND = HandGeometry()


def box_object(half_width: float, depth: float = 0.05, spacing: float = 0.001) -> np.ndarray:
    """Hand-local points of a box: a top face at x=0 and two side walls."""
    ys = np.arange(-half_width, half_width + 1e-9, spacing)
    xs = np.arange(0.0, depth + 1e-9, spacing)
    zs = np.array([-0.005, 0.0, 0.005])

    top = np.array([[0.0, y, z] for y in ys for z in zs])
    walls = np.array([[x, s * half_width, z] for x in xs for s in (-1, 1) for z in zs])
    return np.vstack([top, walls])


def cylinder_setup(cloud_points, num_samples=60):
    cloud = PointCloudPreprocessor().preprocess(PointCloud.from_array(cloud_points))
    index = SpatialIndex(cloud)
    estimator = LocalFrameEstimator(nn_radius=0.01)
    samples = estimator.select_samples(cloud, num_samples, seed=1)
    frames, _ = estimator.calculate_frames(cloud, index, samples)
    return cloud, index, frames


def test_depths_start_at_bite_and_stay_shallow():
    depths = FingerHand(HAND, deepen_step=0.005).depths()

    assert depths[0] == pytest.approx(HAND.init_bite)
    assert np.all(depths < HAND.hand_depth)
    assert len(depths) == 8


def test_fit_centers_hand_on_object():
    fit = FingerHand(HAND).evaluate(box_object(0.02))

    assert fit is not None
    assert fit.width == pytest.approx(0.04)
    assert abs(fit.offset) < 0.005
    assert fit.surface == pytest.approx(0.0)
    assert fit.top == pytest.approx(0.055)
    assert fit.top - fit.bottom == pytest.approx(HAND.hand_depth)


def test_fit_rejects_object_wider_than_hand():
    assert FingerHand(HAND).evaluate(box_object(0.05)) is None


def test_fit_rejects_empty_hand():
    """A single point between the fingers has no width"""
    assert FingerHand(HAND).evaluate(np.array([[0.0, 0.0, 0.0]])) is None
    assert FingerHand(HAND).evaluate(np.zeros((0, 3))) is None


def test_fit_stops_deepening_before_collision():
    points = box_object(0.02)
    # Obstacle in line with the right finger, 0.042 below the surface.
    obstacle = np.array([[0.042, y, 0.0] for y in np.arange(0.035, 0.06, 0.001)])
    fit = FingerHand(HAND).evaluate(np.vstack([points, obstacle]))

    assert fit is not None
    assert fit.top < 0.042


def test_orientations_span_half_turn():
    sampler = HandSearchSampler(HAND, SearchConfig(num_orientations=4))
    np.testing.assert_allclose(sampler.angles, [0, np.pi / 4, np.pi / 2, 3 * np.pi / 4])


def test_plane_has_no_candidates():
    """Fingers placed on a flat plane always hit it"""
    cloud = PointCloud.from_array(make_plane(size=0.4, spacing=0.004))
    index = SpatialIndex(cloud)
    central = np.flatnonzero(np.all(np.abs(cloud.points[:, :2]) < 0.05, axis=1))[::25]
    frames, _ = LocalFrameEstimator(nn_radius=0.01).calculate_frames(cloud, index, central)
    sampler = HandSearchSampler(HAND, SearchConfig(num_orientations=8, num_threads=2))

    assert len(frames) > 0
    assert sampler.search(cloud, index, frames) == []


def test_candidates_are_valid(cylinder_points):
    cloud, index, frames = cylinder_setup(cylinder_points)
    sampler = HandSearchSampler(HAND, SearchConfig(num_orientations=8, num_threads=4))

    candidates = sampler.search(cloud, index, frames)

    assert len(candidates) > 0
    for candidate in candidates:
        assert 0 < candidate.width <= HAND.outer_diameter
        rotation = candidate.rotation
        np.testing.assert_allclose(rotation.T @ rotation, np.eye(3), atol=1e-6)
        np.testing.assert_allclose(candidate.top - candidate.bottom,
                                   HAND.hand_depth * candidate.approach, atol=1e-9)
        assert candidate.feasible


def test_single_orientation_gives_one_candidate_per_sample(cylinder_points):
    cloud, index, frames = cylinder_setup(cylinder_points)
    sampler = HandSearchSampler(HAND, SearchConfig(num_orientations=1, num_threads=4))

    candidates = sampler.search(cloud, index, frames)
    samples = [tuple(c.sample) for c in candidates]

    assert len(candidates) <= len(frames)
    assert len(samples) == len(set(samples))


@pytest.mark.parametrize("num_threads", [3, 20])
def test_candidate_set_independent_of_threads(cylinder_points, num_threads):
    cloud, index, frames = cylinder_setup(cylinder_points)
    search = dict(num_orientations=8)

    single = HandSearchSampler(HAND, SearchConfig(num_threads=1, **search))
    multi = HandSearchSampler(HAND, SearchConfig(num_threads=num_threads, **search))

    single_keys = sorted(c.key() for c in single.search(cloud, index, frames))
    multi_keys = sorted(c.key() for c in multi.search(cloud, index, frames))

    assert single_keys == multi_keys


def test_partition_is_disjoint_and_complete():
    chunks = partition(list(range(10)), 4)

    assert len(chunks) == 4
    assert sum(chunks, []) == list(range(10))
    assert partition([1, 2], 20) == [[1], [2]]


def test_parallel_map_concatenates_results():
    results = parallel_map(lambda x: [x, -x], list(range(1, 8)), num_threads=3)

    assert sorted(results) == sorted(list(range(1, 8)) + [-x for x in range(1, 8)])
    assert parallel_map(lambda x: [x], [], num_threads=4) == []
