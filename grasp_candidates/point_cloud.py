"""
Point Cloud Container

An immutable point cloud that remembers, for every point, which camera it
was seen from. Camera view points decide the orientation of surface
normals.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import open3d as o3d

from .errors import ConfigError, EmptyInputError

# Normals of points without an associated camera are flipped toward +Z.
DEFAULT_NORMAL_DIRECTION = np.array([0.0, 0.0, 1.0])

NO_CAMERA = -1


def _frozen(array: Optional[np.ndarray], dtype) -> Optional[np.ndarray]:
    if array is None:
        return None
    array = np.array(array, dtype=dtype, copy=True)
    array.flags.writeable = False
    return array


@dataclass(frozen=True, eq=False)
class PointCloud:
    """
    Read-only point cloud with per-point camera indices.

    Attributes:
        points: Nx3 point positions
        camera_source: N camera indices into `view_points` (-1 if unknown)
        view_points: Mx3 camera positions
        normals: Optional Nx3 unit surface normals
        colors: Optional Nx3 colors, carried but never used by the pipeline
    """

    points: np.ndarray
    camera_source: np.ndarray
    view_points: np.ndarray
    normals: Optional[np.ndarray] = None
    colors: Optional[np.ndarray] = None

    def __post_init__(self):
        object.__setattr__(self, "points", _frozen(self.points, np.float64).reshape(-1, 3))
        object.__setattr__(self, "camera_source", _frozen(self.camera_source, np.int64))
        object.__setattr__(self, "view_points",
                           _frozen(self.view_points, np.float64).reshape(-1, 3))
        object.__setattr__(self, "normals", _frozen(self.normals, np.float64))
        object.__setattr__(self, "colors", _frozen(self.colors, np.float64))

        n = len(self.points)
        if self.camera_source.shape != (n,):
            raise ConfigError("camera_source must hold one index per point")
        if np.any(self.camera_source >= len(self.view_points)):
            raise ConfigError("camera_source refers to a missing view point")
        for name in ("normals", "colors"):
            value = getattr(self, name)
            if value is not None and value.shape != (n, 3):
                raise ConfigError(f"{name} must have shape ({n}, 3)")

    @classmethod
    def from_array(
        cls,
        array,
        view_points=None,
        camera_source=None
    ) -> "PointCloud":
        """
        Build a cloud from an (N, 3+) array of points.

        Columns 3 to 5, when present, are kept as colors; any further columns
        are ignored. Rows with non-finite coordinates are dropped.

        Args:
            array: Array-like of shape (N, >=3)
            view_points: Optional camera position, or Mx3 camera positions
            camera_source: Optional per-row camera index; defaults to camera 0
                when a view point is given, otherwise no camera

        Returns:
            Point cloud

        Raises:
            ConfigError: If the array is not two-dimensional with at least
                three columns
            EmptyInputError: If the array is empty or no row has finite
                coordinates
        """
        array = np.asarray(array, dtype=np.float64)
        if array.size == 0:
            raise EmptyInputError("Input point cloud is empty")
        if array.ndim != 2 or array.shape[1] < 3:
            raise ConfigError(
                f"points must be an (N, 3) array or wider, got shape {array.shape}"
            )

        view_points = (np.zeros((0, 3)) if view_points is None
                       else np.asarray(view_points, dtype=np.float64).reshape(-1, 3))
        if camera_source is None:
            default = 0 if len(view_points) else NO_CAMERA
            camera_source = np.full(len(array), default, dtype=np.int64)
        else:
            camera_source = np.asarray(camera_source, dtype=np.int64).reshape(-1)
            if len(camera_source) != len(array):
                raise ConfigError("camera_source must hold one index per point")

        finite = np.all(np.isfinite(array[:, :3]), axis=1)
        if not np.any(finite):
            raise EmptyInputError("Input point cloud has no finite points")

        colors = array[finite, 3:6] if array.shape[1] >= 6 else None
        return cls(
            points=array[finite, :3],
            camera_source=camera_source[finite],
            view_points=view_points,
            colors=colors
        )

    def __len__(self) -> int:
        return len(self.points)

    def select(self, indices) -> "PointCloud":
        """Return a new cloud holding only the given points."""
        indices = np.asarray(indices, dtype=np.int64)
        return PointCloud(
            points=self.points[indices],
            camera_source=self.camera_source[indices],
            view_points=self.view_points,
            normals=None if self.normals is None else self.normals[indices],
            colors=None if self.colors is None else self.colors[indices]
        )

    def with_normals(self, normals: np.ndarray) -> "PointCloud":
        return PointCloud(
            points=self.points,
            camera_source=self.camera_source,
            view_points=self.view_points,
            normals=normals,
            colors=self.colors
        )

    def view_point_for(self, index: int) -> Optional[np.ndarray]:
        """Camera position the point at `index` was seen from, if known."""
        source = int(self.camera_source[index])
        if source == NO_CAMERA:
            return None
        return self.view_points[source]

    def to_open3d(self) -> o3d.geometry.PointCloud:
        pcd = o3d.geometry.PointCloud()
        pcd.points = o3d.utility.Vector3dVector(np.array(self.points))
        if self.normals is not None:
            pcd.normals = o3d.utility.Vector3dVector(np.array(self.normals))
        return pcd


def orient_normals(
    normals: np.ndarray,
    points: np.ndarray,
    view_points: Optional[np.ndarray]
) -> np.ndarray:
    """
    Flip normals so that they face their camera.

    Args:
        normals: Nx3 unit normals
        points: Nx3 points the normals belong to
        view_points: Nx3 camera positions, rows of NaN where no camera is
            known, or None if no point has a camera

    Returns:
        Nx3 oriented normals
    """
    normals = np.array(normals, dtype=np.float64, copy=True).reshape(-1, 3)
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)

    reference = np.tile(DEFAULT_NORMAL_DIRECTION, (len(normals), 1))
    if view_points is not None:
        view_points = np.asarray(view_points, dtype=np.float64).reshape(-1, 3)
        known = np.all(np.isfinite(view_points), axis=1)
        reference[known] = view_points[known] - points[known]

    flip = np.einsum("ij,ij->i", normals, reference) < 0
    normals[flip] *= -1.0
    return normals


def camera_positions(cloud: PointCloud) -> Optional[np.ndarray]:
    """Per-point camera positions of a cloud, NaN rows where unknown."""
    if len(cloud.view_points) == 0:
        return None
    positions = np.full((len(cloud), 3), np.nan)
    known = cloud.camera_source != NO_CAMERA
    positions[known] = cloud.view_points[cloud.camera_source[known]]
    return positions
