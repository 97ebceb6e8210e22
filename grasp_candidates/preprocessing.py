"""
Point Cloud Preprocessing Module

This module handles workspace cropping, voxel downsampling, statistical
outlier removal and surface normal estimation for grasp candidate
generation.
"""

import logging
from typing import Optional

import numpy as np
import open3d as o3d

from .config import PreprocessConfig, Workspace
from .errors import EmptyCloudError
from .point_cloud import PointCloud, camera_positions, orient_normals

logger = logging.getLogger(__name__)


class PointCloudPreprocessor:
    """
    Filters raw point clouds before the hand search.

    The steps always run in the same order: crop to the workspace, voxelize,
    remove statistical outliers. Each step returns a new cloud and keeps the
    camera index of every surviving point.
    """

    def __init__(self, config: Optional[PreprocessConfig] = None):
        """
        Initialize the preprocessor.

        Args:
            config: Preprocessing parameters (uses defaults if not provided)
        """
        self.config = config or PreprocessConfig()

    def crop_to_workspace(
        self,
        cloud: PointCloud,
        workspace: Optional[Workspace] = None
    ) -> PointCloud:
        """
        Remove points outside an axis-aligned box.

        Args:
            cloud: Input point cloud
            workspace: Crop box (uses the configured workspace if None; no
                cropping when neither is set)

        Returns:
            Cropped point cloud
        """
        workspace = workspace or self.config.workspace
        if workspace is None:
            return cloud

        bbox = o3d.geometry.AxisAlignedBoundingBox(workspace.min_bound, workspace.max_bound)
        indices = bbox.get_point_indices_within_bounding_box(
            o3d.utility.Vector3dVector(np.array(cloud.points))
        )
        return cloud.select(np.sort(np.asarray(indices, dtype=np.int64)))

    def voxel_downsample(
        self,
        cloud: PointCloud,
        leaf_size: Optional[float] = None
    ) -> PointCloud:
        """
        Replace the points of every occupied voxel by their centroid.

        The voxel inherits the camera index of its first member. Output points
        are sorted lexicographically so that the result does not depend on
        hash-map iteration order.

        Args:
            cloud: Input point cloud
            leaf_size: Voxel edge length (uses the configured size if None)

        Returns:
            Downsampled point cloud
        """
        leaf_size = leaf_size or self.config.voxel_size
        if len(cloud) == 0:
            return cloud

        pcd = cloud.to_open3d()
        margin = 0.5 * leaf_size
        pcd_down, _, traces = pcd.voxel_down_sample_and_trace(
            leaf_size,
            cloud.points.min(axis=0) - margin,
            cloud.points.max(axis=0) + margin,
            approximate_class=False
        )

        points = np.asarray(pcd_down.points)
        first_members = np.array([int(np.asarray(t)[0]) for t in traces], dtype=np.int64)
        order = np.lexsort(points.T[::-1])

        colors = None
        if cloud.colors is not None:
            colors = np.array([cloud.colors[np.asarray(t)].mean(axis=0) for t in traces])
            colors = colors[order]

        return PointCloud(
            points=points[order],
            camera_source=cloud.camera_source[first_members[order]],
            view_points=cloud.view_points,
            colors=colors
        )

    def remove_statistical_outliers(
        self,
        cloud: PointCloud,
        k: Optional[int] = None,
        std_ratio: Optional[float] = None
    ) -> PointCloud:
        """
        Remove points whose mean neighbor distance is unusually large.

        A point is removed when the mean distance to its k nearest neighbors
        exceeds the global mean by more than `std_ratio` standard deviations.

        Args:
            cloud: Input point cloud
            k: Number of neighbors (clamped to the cloud size minus one)
            std_ratio: Standard deviation multiplier

        Returns:
            Filtered point cloud
        """
        k = k or self.config.outlier_nb_neighbors
        std_ratio = std_ratio or self.config.outlier_std_ratio
        if len(cloud) < 3:
            return cloud

        k = min(k, len(cloud) - 1)
        _, inliers = cloud.to_open3d().remove_statistical_outlier(
            nb_neighbors=k,
            std_ratio=std_ratio
        )
        return cloud.select(np.sort(np.asarray(inliers, dtype=np.int64)))

    def preprocess(self, cloud: PointCloud) -> PointCloud:
        """
        Complete preprocessing pipeline: crop, voxelize and denoise.

        Args:
            cloud: Raw point cloud

        Returns:
            Preprocessed point cloud

        Raises:
            EmptyCloudError: If any step leaves no points
        """
        logger.debug("Preprocessing cloud with %d points", len(cloud))

        cloud = self.crop_to_workspace(cloud)
        if len(cloud) == 0:
            raise EmptyCloudError("workspace cropping")
        logger.debug("%d points inside the workspace", len(cloud))

        if self.config.voxelize:
            cloud = self.voxel_downsample(cloud)
            if len(cloud) == 0:
                raise EmptyCloudError("voxelization")
            logger.debug("%d points after voxelization", len(cloud))

        if self.config.remove_outliers:
            cloud = self.remove_statistical_outliers(cloud)
            if len(cloud) == 0:
                raise EmptyCloudError("outlier removal")
            logger.debug("%d points after outlier removal", len(cloud))

        return cloud


def estimate_normals(cloud: PointCloud, radius: float, max_nn: int = 30) -> PointCloud:
    """
    Estimate a surface normal for every point of a cloud.

    Normals are oriented toward the camera of each point, or toward +Z for
    points without a camera.

    Args:
        cloud: Input point cloud
        radius: Neighborhood radius for the local plane fit
        max_nn: Maximum number of neighbors per fit

    Returns:
        Copy of the cloud with normals
    """
    if len(cloud) == 0:
        return cloud.with_normals(np.zeros((0, 3)))

    pcd = cloud.to_open3d()
    pcd.estimate_normals(
        search_param=o3d.geometry.KDTreeSearchParamHybrid(radius=radius, max_nn=max_nn)
    )
    normals = orient_normals(np.asarray(pcd.normals), cloud.points, camera_positions(cloud))
    return cloud.with_normals(normals)
