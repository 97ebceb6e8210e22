"""
Synthetic point clouds shared by the test modules.
"""

import numpy as np
import pytest

from grasp_candidates import (
    PipelineConfig,
    PointCloud,
    PreprocessConfig,
    SearchConfig,
)

CYLINDER_RADIUS = 0.02
CYLINDER_HEIGHT = 0.08


def make_plane(size: float = 0.4, spacing: float = 0.004, z: float = 0.0) -> np.ndarray:
    """Square grid of points in a horizontal plane centered at the origin."""
    ticks = np.arange(-0.5 * size, 0.5 * size + 1e-9, spacing)
    xx, yy = np.meshgrid(ticks, ticks)
    return np.column_stack([xx.ravel(), yy.ravel(), np.full(xx.size, z)])


def make_cylinder(
    radius: float = CYLINDER_RADIUS,
    height: float = CYLINDER_HEIGHT,
    spacing: float = 0.002
) -> np.ndarray:
    """Upright cylinder wall from z=0 to z=height with a closed top cap."""
    num_angles = int(np.ceil(2 * np.pi * radius / spacing))
    angles = np.arange(num_angles) * 2 * np.pi / num_angles
    heights = np.arange(0.0, height + 1e-9, spacing)
    aa, hh = np.meshgrid(angles, heights)
    wall = np.column_stack([radius * np.cos(aa.ravel()),
                            radius * np.sin(aa.ravel()),
                            hh.ravel()])

    ticks = np.arange(-radius, radius + 1e-9, spacing)
    xx, yy = np.meshgrid(ticks, ticks)
    inside = xx ** 2 + yy ** 2 < (radius - 0.5 * spacing) ** 2
    cap = np.column_stack([xx[inside], yy[inside], np.full(np.count_nonzero(inside), height)])
    return np.vstack([wall, cap])


def small_config(**search_overrides) -> PipelineConfig:
    """Default configuration with a search small enough for unit tests."""
    search = dict(num_samples=60, num_orientations=8, num_threads=4, seed=0)
    search.update(search_overrides)
    return PipelineConfig(search=SearchConfig(**search), preprocess=PreprocessConfig())


@pytest.fixture
def plane_points():
    return make_plane()


@pytest.fixture
def cylinder_points():
    return make_cylinder()


@pytest.fixture
def cylinder_cloud(cylinder_points):
    return PointCloud.from_array(cylinder_points)


@pytest.fixture
def cylinder_config():
    return small_config()
