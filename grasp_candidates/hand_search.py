"""
Hand Search Module

This module searches for collision-free two-finger hand poses around local
reference frames. Every frame is rotated about its surface normal through a
half turn; at each orientation a box model of the hand is placed into the
point neighborhood, slid sideways to find a collision-free finger placement
and pushed deeper along the approach direction while it stays collision
free.

Hand-local coordinates: x runs along the approach direction, y along the
closing direction of the fingers, z along the hand axis.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .config import HandGeometry, SearchConfig
from .grasp import GraspCandidate
from .local_frames import LocalFrame
from .parallel import parallel_map
from .point_cloud import PointCloud
from .spatial_index import SpatialIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HandFit:
    """Placement of the hand along a fixed orientation, in hand-local coordinates."""

    offset: float   # lateral position of the hand center
    bottom: float   # depth of the hand base
    top: float      # depth of the fingertips
    surface: float  # depth of the shallowest point between the fingers
    width: float    # extent of the points between the fingers


class FingerHand:
    """
    Box model of a parallel-jaw hand in hand-local coordinates.

    Each finger is a box `finger_width` thick, `hand_depth` long and
    `hand_height` tall. The palm is a slab of the same thickness as a finger
    behind the hand base, spanning both fingers.
    """

    def __init__(
        self,
        hand: HandGeometry,
        num_placements: int = 10,
        deepen_step: float = 0.005
    ):
        """
        Initialize the hand model.

        Args:
            hand: Hand geometry
            num_placements: Number of lateral hand positions tried per pose
            deepen_step: Increment of the fingertip depth while deepening
        """
        self.hand = hand
        self.deepen_step = deepen_step
        w = hand.opening_half_width
        # Open interval, so the sample always lies strictly between the fingers.
        self.offsets = np.linspace(-w, w, num_placements + 2)[1:-1]

    def crop_to_height(self, points: np.ndarray) -> np.ndarray:
        """Keep the points inside the slab swept by the fingers."""
        return points[np.abs(points[:, 2]) <= 0.5 * self.hand.hand_height]

    def collides(self, points: np.ndarray, offset: float, top: float) -> bool:
        """
        Check whether any point lies inside a finger or the palm.

        Args:
            points: Nx3 hand-local points, already cropped to the hand height
            offset: Lateral position of the hand center
            top: Depth of the fingertips

        Returns:
            True if the hand collides with the points
        """
        hand = self.hand
        bottom = top - hand.hand_depth
        half_outer = 0.5 * hand.outer_diameter
        w = hand.opening_half_width
        x = points[:, 0]
        y = points[:, 1] - offset

        in_fingers = (x >= bottom) & (x <= top) & (np.abs(y) >= w) & (np.abs(y) <= half_outer)
        in_palm = (x >= bottom - hand.finger_width) & (x < bottom) & (np.abs(y) <= half_outer)
        return bool(np.any(in_fingers | in_palm))

    def closing_region(self, points: np.ndarray, offset: float, top: float) -> np.ndarray:
        """Boolean mask of the points strictly between the fingers."""
        bottom = top - self.hand.hand_depth
        x = points[:, 0]
        y = points[:, 1] - offset
        return (x >= bottom) & (x <= top) & (np.abs(y) < self.hand.opening_half_width)

    def depths(self) -> np.ndarray:
        """
        Fingertip depths visited while deepening, starting at the initial bite.

        Fingertips stay shallower than `hand_depth`, so the palm always stays
        in front of the sample.
        """
        hand = self.hand
        num_depths = int(np.ceil((hand.hand_depth - hand.init_bite) / self.deepen_step - 1e-9))
        return hand.init_bite + self.deepen_step * np.arange(max(num_depths, 1))

    def evaluate(self, points: np.ndarray) -> Optional[HandFit]:
        """
        Fit the hand to hand-local points.

        Among the lateral placements that are collision free at the initial
        bite and hold at least one point, the middle one is chosen. The hand
        is then deepened as long as it stays collision free.

        Args:
            points: Nx3 hand-local points, already cropped to the hand height

        Returns:
            Hand fit, or None if no valid placement exists
        """
        depths = self.depths()
        top = depths[0]

        feasible = [
            offset for offset in self.offsets
            if not self.collides(points, offset, top)
            and np.any(self.closing_region(points, offset, top))
        ]
        if not feasible:
            return None
        offset = float(feasible[int(np.ceil(len(feasible) / 2.0)) - 1])

        for depth in depths[1:]:
            if self.collides(points, offset, depth):
                break
            top = depth

        inside = points[self.closing_region(points, offset, top)]
        if len(inside) < 2:
            return None

        width = float(inside[:, 1].max() - inside[:, 1].min())
        if width <= 0 or width > self.hand.outer_diameter:
            return None

        return HandFit(
            offset=offset,
            bottom=float(top - self.hand.hand_depth),
            top=float(top),
            surface=float(inside[:, 0].min()),
            width=width
        )


class HandSearchSampler:
    """
    Generates raw grasp candidates from local frames.

    Frames are processed independently on a pool of worker threads. The cloud
    and its spatial index are only read, and every worker collects its
    candidates in a private list.
    """

    def __init__(self, hand: HandGeometry, search: SearchConfig):
        """
        Initialize the sampler.

        Args:
            hand: Hand geometry
            search: Search parameters
        """
        self.hand = hand
        self.search_config = search
        self.finger_hand = FingerHand(hand, search.num_finger_placements, search.deepen_step)
        # Half turn only: turning the hand by 180 degrees swaps the fingers.
        self.angles = np.arange(search.num_orientations) * np.pi / search.num_orientations

    def hand_rotations(self, frame: LocalFrame) -> List[np.ndarray]:
        """
        Hand orientations obtained by rotating a frame about its normal.

        Returns:
            List of 3x3 matrices with columns approach, binormal, axis
        """
        approach = -frame.normal
        rotations = []
        for angle in self.angles:
            binormal = np.cos(angle) * frame.binormal + np.sin(angle) * frame.curvature_axis
            binormal = binormal / np.linalg.norm(binormal)
            axis = np.cross(approach, binormal)
            axis = axis / np.linalg.norm(axis)
            rotations.append(np.column_stack([approach, binormal, axis]))
        return rotations

    def evaluate_frame(
        self,
        frame: LocalFrame,
        cloud: PointCloud,
        index: SpatialIndex
    ) -> List[GraspCandidate]:
        """
        Search all orientations of one frame.

        Args:
            frame: Local frame at the sample
            cloud: Point cloud the frame was estimated from
            index: Spatial index over the cloud

        Returns:
            Candidates of this frame, at most one per orientation
        """
        neighbors = cloud.points[index.radius_search(frame.sample, self.hand.reach)]
        candidates = []

        for rotation in self.hand_rotations(frame):
            local = self.finger_hand.crop_to_height((neighbors - frame.sample) @ rotation)
            fit = self.finger_hand.evaluate(local)
            if fit is None:
                continue
            candidates.append(self._make_candidate(frame, rotation, fit))

        return candidates

    @staticmethod
    def _make_candidate(
        frame: LocalFrame,
        rotation: np.ndarray,
        fit: HandFit
    ) -> GraspCandidate:
        def to_world(depth: float) -> np.ndarray:
            return frame.sample + rotation @ np.array([depth, fit.offset, 0.0])

        return GraspCandidate(
            bottom=to_world(fit.bottom),
            top=to_world(fit.top),
            surface=to_world(fit.surface),
            approach=rotation[:, 0].copy(),
            binormal=rotation[:, 1].copy(),
            axis=rotation[:, 2].copy(),
            width=fit.width,
            sample=np.array(frame.sample),
            feasible=True
        )

    def search(
        self,
        cloud: PointCloud,
        index: SpatialIndex,
        frames: List[LocalFrame]
    ) -> List[GraspCandidate]:
        """
        Generate candidates for all frames in parallel.

        Args:
            cloud: Preprocessed point cloud
            index: Spatial index over the cloud
            frames: Local frames to search around

        Returns:
            Raw candidates in unspecified order
        """
        candidates = parallel_map(
            lambda frame: self.evaluate_frame(frame, cloud, index),
            frames,
            self.search_config.num_threads
        )
        logger.debug("Hand search found %d candidates for %d frames",
                     len(candidates), len(frames))
        return candidates
