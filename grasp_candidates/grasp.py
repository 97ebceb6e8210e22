"""
Grasp Types

Raw hand-search candidates and their scored, antipodally classified
counterparts.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict

import numpy as np


class Antipodal(Enum):
    """Antipodal classification of a grasp."""

    NONE = 0
    HALF = 1
    FULL = 2


@dataclass(frozen=True, eq=False)
class GraspCandidate:
    """
    Collision-free hand pose found by the hand search.

    Attributes:
        bottom: Center of the hand base
        top: Center between the fingertips
        surface: Point where the hand first meets the object, on the line
            from bottom to top
        approach: Unit approach direction (from bottom to top)
        binormal: Unit closing direction of the fingers
        axis: Unit hand axis, approach x binormal
        width: Extent of the object between the fingers
        sample: Sample point the candidate was generated from
        feasible: Whether the pose passed the geometric tests
    """

    bottom: np.ndarray
    top: np.ndarray
    surface: np.ndarray
    approach: np.ndarray
    binormal: np.ndarray
    axis: np.ndarray
    width: float
    sample: np.ndarray
    feasible: bool = True

    @property
    def rotation(self) -> np.ndarray:
        """3x3 hand orientation with columns approach, binormal, axis."""
        return np.column_stack([self.approach, self.binormal, self.axis])

    def key(self, decimals: int = 9) -> tuple:
        """Rounded pose tuple, for comparing candidates as sets."""
        values = np.concatenate([self.bottom, self.approach, self.binormal, [self.width]])
        return tuple(np.round(values, decimals).tolist())


@dataclass(frozen=True, eq=False)
class ScoredGrasp:
    """A grasp candidate with its score and antipodal classification."""

    candidate: GraspCandidate
    score: float
    antipodal: Antipodal

    @property
    def bottom(self) -> np.ndarray:
        return self.candidate.bottom

    @property
    def top(self) -> np.ndarray:
        return self.candidate.top

    @property
    def surface(self) -> np.ndarray:
        return self.candidate.surface

    @property
    def approach(self) -> np.ndarray:
        return self.candidate.approach

    @property
    def binormal(self) -> np.ndarray:
        return self.candidate.binormal

    @property
    def axis(self) -> np.ndarray:
        return self.candidate.axis

    @property
    def width(self) -> float:
        return self.candidate.width

    @property
    def sample(self) -> np.ndarray:
        return self.candidate.sample

    def is_full_antipodal(self) -> bool:
        return self.antipodal is Antipodal.FULL

    def is_half_antipodal(self) -> bool:
        return self.antipodal is Antipodal.HALF

    def to_dict(self) -> Dict:
        return {
            'bottom': self.bottom,
            'top': self.top,
            'surface': self.surface,
            'approach': self.approach,
            'binormal': self.binormal,
            'axis': self.axis,
            'width': float(self.width),
            'sample': self.sample,
            'score': float(self.score),
            'full_antipodal': self.is_full_antipodal(),
            'half_antipodal': self.is_half_antipodal()
        }
