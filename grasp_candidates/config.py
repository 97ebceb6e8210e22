"""
Pipeline Configuration

This module holds the immutable parameter sets of the grasp candidate
pipeline: hand geometry, local search, preprocessing and scoring. All
lengths are in metres, all angles in degrees.
"""

import math
import numbers
from dataclasses import dataclass, field, fields, replace
from typing import Dict, Optional, Tuple

import numpy as np

from .errors import ConfigError


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def _require_numbers(config) -> None:
    """Check that every int and float field of a config holds a real number."""
    for f in fields(config):
        value = getattr(config, f.name)
        if f.type is int:
            valid = isinstance(value, numbers.Integral) and not isinstance(value, bool)
        elif f.type is float:
            valid = isinstance(value, numbers.Real) and not isinstance(value, bool)
        else:
            continue
        _require(valid, f"{f.name} must be a number, got {value!r}")


@dataclass(frozen=True)
class HandGeometry:
    """
    Geometry of a two-finger parallel-jaw hand.

    The hand is modelled as two finger boxes joined by a palm. The fingers
    are `outer_diameter` apart measured across their outer faces, so the
    opening between them is `outer_diameter - 2 * finger_width`.
    """

    finger_width: float = 0.0065    # thickness of each finger
    outer_diameter: float = 0.098   # span across the outer finger faces
    hand_depth: float = 0.06        # finger length along the approach
    hand_height: float = 0.02       # finger extent along the hand axis
    init_bite: float = 0.02         # initial fingertip depth past the sample

    @property
    def opening_half_width(self) -> float:
        """Half of the free space between the fingers."""
        return 0.5 * self.outer_diameter - self.finger_width

    @property
    def reach(self) -> float:
        """Radius of a sphere around the sample enclosing every hand pose."""
        x_extent = max(self.hand_depth,
                       self.hand_depth - self.init_bite + self.finger_width)
        y_extent = self.opening_half_width + 0.5 * self.outer_diameter
        z_extent = 0.5 * self.hand_height
        return float(math.sqrt(x_extent ** 2 + y_extent ** 2 + z_extent ** 2))

    def validate(self) -> None:
        _require_numbers(self)
        for f in fields(self):
            _require(getattr(self, f.name) > 0, f"{f.name} must be positive")
        _require(
            self.finger_width < 0.5 * self.outer_diameter,
            "finger_width must leave an opening between the fingers "
            f"(finger_width={self.finger_width}, outer_diameter={self.outer_diameter})"
        )
        _require(self.init_bite < self.hand_depth,
                 "init_bite must be smaller than hand_depth")


@dataclass(frozen=True)
class SearchConfig:
    """Parameters of frame estimation and the oriented hand search."""

    nn_radius_frames: float = 0.01
    num_orientations: int = 16
    num_samples: int = 160
    num_threads: int = 20
    num_finger_placements: int = 10
    deepen_step: float = 0.005
    seed: int = 0

    def validate(self) -> None:
        _require_numbers(self)
        _require(self.nn_radius_frames > 0, "nn_radius_frames must be positive")
        _require(self.num_orientations >= 1, "num_orientations must be at least 1")
        _require(self.num_samples >= 1, "num_samples must be at least 1")
        _require(self.num_threads >= 1, "num_threads must be at least 1")
        _require(self.num_finger_placements >= 1,
                 "num_finger_placements must be at least 1")
        _require(self.deepen_step > 0, "deepen_step must be positive")


@dataclass(frozen=True)
class Workspace:
    """Axis-aligned crop box."""

    x_min: float
    x_max: float
    y_min: float
    y_max: float
    z_min: float
    z_max: float

    @classmethod
    def from_sequence(cls, bounds) -> "Workspace":
        """Build from [x_min, x_max, y_min, y_max, z_min, z_max]."""
        try:
            values = [float(v) for v in bounds]
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"workspace bounds must be numbers: {exc}") from exc
        _require(len(values) == 6, "workspace needs exactly six bounds")
        return cls(*values)

    @property
    def min_bound(self) -> np.ndarray:
        return np.array([self.x_min, self.y_min, self.z_min], dtype=np.float64)

    @property
    def max_bound(self) -> np.ndarray:
        return np.array([self.x_max, self.y_max, self.z_max], dtype=np.float64)

    def validate(self) -> None:
        _require_numbers(self)
        _require(
            bool(np.all(self.min_bound <= self.max_bound)),
            "workspace minimum bounds must not exceed maximum bounds"
        )


@dataclass(frozen=True)
class PreprocessConfig:
    """Parameters of workspace cropping, voxelization and outlier removal."""

    voxelize: bool = True
    voxel_size: float = 0.003
    remove_outliers: bool = True
    outlier_nb_neighbors: int = 20
    outlier_std_ratio: float = 2.0
    workspace: Optional[Workspace] = None

    def validate(self) -> None:
        _require_numbers(self)
        _require(self.voxel_size > 0, "voxel_size must be positive")
        _require(self.outlier_nb_neighbors >= 1,
                 "outlier_nb_neighbors must be at least 1")
        _require(self.outlier_std_ratio > 0, "outlier_std_ratio must be positive")
        if self.workspace is not None:
            self.workspace.validate()


@dataclass(frozen=True)
class ScoringConfig:
    """
    Antipodal classification thresholds and score weights.

    A finger side counts as antipodal when at least `min_viable_points` of
    its contact normals lie inside the friction cone around the closing
    direction.
    """

    full_friction_angle: float = 20.0
    half_friction_angle: float = 45.0
    contact_threshold: float = 0.003
    min_viable_points: int = 6
    alignment_weight: float = 0.5
    centering_weight: float = 0.3
    margin_weight: float = 0.2

    @property
    def weights(self) -> Tuple[float, float, float]:
        return (self.alignment_weight, self.centering_weight, self.margin_weight)

    def validate(self) -> None:
        _require_numbers(self)
        _require(0 < self.full_friction_angle < 90,
                 "full_friction_angle must lie in (0, 90) degrees")
        _require(self.full_friction_angle < self.half_friction_angle < 90,
                 "half_friction_angle must lie between full_friction_angle and 90 degrees")
        _require(self.contact_threshold > 0, "contact_threshold must be positive")
        _require(self.min_viable_points >= 1, "min_viable_points must be at least 1")
        _require(all(w >= 0 for w in self.weights), "score weights must be non-negative")
        _require(sum(self.weights) > 0, "at least one score weight must be positive")


@dataclass(frozen=True)
class PipelineConfig:
    """Complete configuration of one pipeline run."""

    hand: HandGeometry = field(default_factory=HandGeometry)
    search: SearchConfig = field(default_factory=SearchConfig)
    preprocess: PreprocessConfig = field(default_factory=PreprocessConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    view_point: Optional[Tuple[float, float, float]] = None

    def validate(self) -> None:
        """
        Check every parameter set.

        Raises:
            ConfigError: On the first invalid parameter
        """
        self.hand.validate()
        self.search.validate()
        self.preprocess.validate()
        self.scoring.validate()
        if self.view_point is not None:
            view_point = np.asarray(self.view_point, dtype=np.float64)
            _require(view_point.shape == (3,) and bool(np.all(np.isfinite(view_point))),
                     "view_point must be three finite coordinates")

    def with_seed(self, seed: int) -> "PipelineConfig":
        return replace(self, search=replace(self.search, seed=int(seed)))

    @classmethod
    def from_dict(cls, specs: Dict) -> "PipelineConfig":
        """
        Build a configuration from nested plain dictionaries.

        Args:
            specs: Dictionary with optional 'hand', 'search', 'preprocess',
                'scoring' sub-dictionaries (keyword arguments of the matching
                dataclass), an optional 'workspace' given as six bounds, and
                an optional 'view_point'

        Returns:
            Configuration with defaults for every omitted key
        """
        known = {"hand", "search", "preprocess", "scoring", "workspace", "view_point"}
        unknown = set(specs) - known
        _require(not unknown, f"unknown configuration sections: {sorted(unknown)}")

        try:
            hand = HandGeometry(**specs.get("hand", {}))
            search = SearchConfig(**specs.get("search", {}))
            preprocess_specs = dict(specs.get("preprocess", {}))
            scoring = ScoringConfig(**specs.get("scoring", {}))
        except TypeError as exc:
            raise ConfigError(str(exc)) from exc

        workspace = specs.get("workspace", preprocess_specs.pop("workspace", None))
        if workspace is not None and not isinstance(workspace, Workspace):
            workspace = Workspace.from_sequence(workspace)
        try:
            preprocess = PreprocessConfig(workspace=workspace, **preprocess_specs)
        except TypeError as exc:
            raise ConfigError(str(exc)) from exc

        view_point = specs.get("view_point")
        if view_point is not None:
            view_point = tuple(float(v) for v in view_point)

        return cls(hand=hand, search=search, preprocess=preprocess,
                   scoring=scoring, view_point=view_point)
