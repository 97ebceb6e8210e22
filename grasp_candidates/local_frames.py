"""
Local Frame Estimation Module

This module selects sample points from a point cloud and estimates a local
reference frame (surface normal, principal curvature axis, binormal) at each
of them using Principal Component Analysis of the point neighborhood.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .point_cloud import PointCloud, orient_normals
from .spatial_index import SpatialIndex

logger = logging.getLogger(__name__)

# Fewer neighbors than this do not define a plane.
MIN_NEIGHBORS = 3


@dataclass(frozen=True, eq=False)
class LocalFrame:
    """
    Orthonormal frame at a sample point.

    Attributes:
        sample: Sample position
        sample_index: Index of the sample in the cloud
        normal: Unit surface normal, facing the camera
        curvature_axis: Unit principal curvature axis, orthogonal to the normal
        binormal: normal x curvature_axis
    """

    sample: np.ndarray
    sample_index: int
    normal: np.ndarray
    curvature_axis: np.ndarray
    binormal: np.ndarray


class LocalFrameEstimator:
    """
    Estimates local reference frames from point neighborhoods.

    Sample selection uses its own random generator seeded by the caller, so
    two pipeline runs never share random state.
    """

    def __init__(self, nn_radius: float = 0.01):
        """
        Initialize the estimator.

        Args:
            nn_radius: Radius of the neighborhood used for each frame
        """
        self.nn_radius = nn_radius

    @staticmethod
    def select_samples(cloud: PointCloud, num_samples: int, seed: int) -> np.ndarray:
        """
        Draw sample indices uniformly without replacement.

        Args:
            cloud: Point cloud to sample from
            num_samples: Number of samples (clamped to the cloud size)
            seed: Seed of the random generator

        Returns:
            Array of point indices
        """
        num_samples = min(int(num_samples), len(cloud))
        rng = np.random.default_rng(seed)
        return rng.choice(len(cloud), size=num_samples, replace=False)

    @staticmethod
    def principal_axes(points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Eigen-decompose the covariance of a point set about its centroid.

        Args:
            points: Nx3 array of 3D points

        Returns:
            Tuple of (eigenvalues ascending, eigenvectors as columns)
        """
        centered = points - points.mean(axis=0)
        cov = centered.T @ centered / len(points)
        return np.linalg.eigh(cov)

    def estimate_frame(
        self,
        cloud: PointCloud,
        index: SpatialIndex,
        sample_index: int
    ) -> Optional[LocalFrame]:
        """
        Estimate the local frame at one sample.

        Args:
            cloud: Point cloud holding the sample
            index: Spatial index over the same cloud
            sample_index: Index of the sample point

        Returns:
            Local frame, or None if the neighborhood is too small
        """
        sample = cloud.points[sample_index]
        neighbors = index.radius_search(sample, self.nn_radius)
        if len(neighbors) < MIN_NEIGHBORS:
            return None

        _, eigvecs = self.principal_axes(cloud.points[neighbors])

        normal = eigvecs[:, 0]
        normal = normal / np.linalg.norm(normal)
        view_point = cloud.view_point_for(sample_index)
        normal = orient_normals(
            normal[np.newaxis],
            sample[np.newaxis],
            None if view_point is None else view_point[np.newaxis]
        )[0]

        curvature_axis = eigvecs[:, 2] - np.dot(eigvecs[:, 2], normal) * normal
        curvature_axis = curvature_axis / np.linalg.norm(curvature_axis)

        binormal = np.cross(normal, curvature_axis)
        binormal = binormal / np.linalg.norm(binormal)

        return LocalFrame(
            sample=np.array(sample),
            sample_index=int(sample_index),
            normal=normal,
            curvature_axis=curvature_axis,
            binormal=binormal
        )

    def calculate_frames(
        self,
        cloud: PointCloud,
        index: SpatialIndex,
        sample_indices
    ) -> Tuple[List[LocalFrame], int]:
        """
        Estimate frames for a set of samples.

        Args:
            cloud: Point cloud
            index: Spatial index over the cloud
            sample_indices: Indices of the sample points

        Returns:
            Tuple of (frames of the samples that have enough neighbors,
            number of skipped samples)
        """
        frames = []
        skipped = 0
        for sample_index in sample_indices:
            frame = self.estimate_frame(cloud, index, int(sample_index))
            if frame is None:
                skipped += 1
                continue
            frames.append(frame)

        if skipped:
            logger.debug("Skipped %d samples with fewer than %d neighbors",
                         skipped, MIN_NEIGHBORS)
        logger.debug("Estimated %d local frames", len(frames))
        return frames, skipped
