"""
Spatial Index Module

Radius and nearest-neighbor queries over a point cloud, backed by an Open3D
KD-tree. The index is built once per pipeline run and only read afterwards,
so worker threads share it without locking.
"""

import numpy as np
import open3d as o3d

from .point_cloud import PointCloud


class SpatialIndex:
    """Read-only KD-tree over the points of a cloud."""

    def __init__(self, cloud: PointCloud):
        self.cloud = cloud
        self._pcd = cloud.to_open3d()
        self._tree = o3d.geometry.KDTreeFlann(self._pcd)

    def __len__(self) -> int:
        return len(self.cloud)

    def radius_search(self, point: np.ndarray, radius: float) -> np.ndarray:
        """
        Find all points within `radius` of `point`.

        Args:
            point: Query position
            radius: Search radius

        Returns:
            Indices of the neighbors in ascending order
        """
        if len(self.cloud) == 0:
            return np.zeros(0, dtype=np.int64)
        query = np.asarray(point, dtype=np.float64).reshape(3)
        _, indices, _ = self._tree.search_radius_vector_3d(query, radius)
        return np.sort(np.asarray(indices, dtype=np.int64))

    def knn_search(self, point: np.ndarray, k: int) -> np.ndarray:
        """
        Find the `k` nearest points to `point`.

        Returns:
            Indices ordered by increasing distance
        """
        if len(self.cloud) == 0 or k <= 0:
            return np.zeros(0, dtype=np.int64)
        query = np.asarray(point, dtype=np.float64).reshape(3)
        _, indices, _ = self._tree.search_knn_vector_3d(query, min(k, len(self.cloud)))
        return np.asarray(indices, dtype=np.int64)
