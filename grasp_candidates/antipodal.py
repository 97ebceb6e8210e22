"""
Antipodal Scoring Module

This module classifies grasp candidates as full, half or non antipodal by
inspecting the surface normals at the two finger contacts, and scores them
by normal alignment, centering on the object and clearance to the fingers.
"""

import logging
from dataclasses import replace
from typing import List, Optional, Tuple

import numpy as np

from .config import HandGeometry, ScoringConfig, SearchConfig
from .grasp import Antipodal, GraspCandidate, ScoredGrasp
from .hand_search import FingerHand
from .parallel import parallel_map
from .point_cloud import PointCloud
from .spatial_index import SpatialIndex

logger = logging.getLogger(__name__)


def grasp_score(
    alignment: float,
    offset: float,
    width: float,
    hand: HandGeometry,
    scoring: ScoringConfig
) -> float:
    """
    Weighted grasp quality.

    Args:
        alignment: Mean alignment of the contact normals with the closing
            direction, in [0, 1]
        offset: Lateral distance between the hand center and the centroid of
            the points between the fingers
        width: Extent of the object between the fingers
        hand: Hand geometry
        scoring: Score weights

    Returns:
        Score that grows with alignment, shrinks with offset and shrinks
        with width
    """
    alignment_score = float(np.clip(alignment, 0.0, 1.0))
    centering_score = 1.0 - min(abs(offset) / hand.opening_half_width, 1.0)
    margin_score = float(np.clip(
        (hand.outer_diameter - width) / hand.outer_diameter,
        0.0, 1.0
    ))

    alignment_weight, centering_weight, margin_weight = scoring.weights
    return float(
        alignment_weight * alignment_score +
        centering_weight * centering_score +
        margin_weight * margin_score
    )


class AntipodalScorer:
    """
    Evaluates grasp candidates against a point cloud with normals.

    The same evaluation serves the first scoring pass on the downsampled
    cloud and the re-evaluation on the original cloud: the hand is checked
    for collisions, the object width is measured, and the contact normals
    decide the classification.
    """

    def __init__(
        self,
        hand: HandGeometry,
        scoring: Optional[ScoringConfig] = None,
        search: Optional[SearchConfig] = None
    ):
        """
        Initialize the scorer.

        Args:
            hand: Hand geometry
            scoring: Classification thresholds and weights (uses defaults
                if not provided)
            search: Search parameters, for the hand model and thread count
        """
        self.hand = hand
        self.scoring = scoring or ScoringConfig()
        search = search or SearchConfig()
        self.num_threads = search.num_threads
        self.finger_hand = FingerHand(hand, search.num_finger_placements, search.deepen_step)
        self.cos_full = float(np.cos(np.radians(self.scoring.full_friction_angle)))
        self.cos_half = float(np.cos(np.radians(self.scoring.half_friction_angle)))

    def classify(
        self,
        left_alignment: np.ndarray,
        right_alignment: np.ndarray
    ) -> Antipodal:
        """
        Classify a grasp from the normal alignments of both contact regions.

        Args:
            left_alignment: |n . binormal| of the contact normals on one side
            right_alignment: |n . binormal| on the other side

        Returns:
            FULL if both sides lie in the tight friction cone, HALF if one
            side lies in the tight and the other in the loose cone, else NONE
        """
        min_viable = self.scoring.min_viable_points

        def viable(alignment: np.ndarray, cos_angle: float) -> bool:
            return int(np.count_nonzero(alignment >= cos_angle)) >= min_viable

        left_full = viable(left_alignment, self.cos_full)
        right_full = viable(right_alignment, self.cos_full)
        if left_full and right_full:
            return Antipodal.FULL

        left_half = viable(left_alignment, self.cos_half)
        right_half = viable(right_alignment, self.cos_half)
        if (left_full and right_half) or (right_full and left_half):
            return Antipodal.HALF

        return Antipodal.NONE

    def local_points(
        self,
        candidate: GraspCandidate,
        cloud: PointCloud,
        index: SpatialIndex
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Points and normal alignments around a candidate, in its hand frame.

        The origin is the hand base; only points within the hand height are
        returned.

        Returns:
            Tuple of (Nx3 hand-local points, N alignments |n . binormal|)
        """
        indices = index.radius_search(candidate.bottom, self.hand.reach)
        local = (cloud.points[indices] - candidate.bottom) @ candidate.rotation
        alignment = np.abs(cloud.normals[indices] @ candidate.binormal)

        in_height = np.abs(local[:, 2]) <= 0.5 * self.hand.hand_height
        return local[in_height], alignment[in_height]

    def score(
        self,
        candidate: GraspCandidate,
        cloud: PointCloud,
        index: SpatialIndex
    ) -> Optional[ScoredGrasp]:
        """
        Score and classify a single candidate.

        Args:
            candidate: Grasp candidate
            cloud: Point cloud with normals
            index: Spatial index over the cloud

        Returns:
            Scored grasp with the width measured in this cloud, or None if
            the hand collides, holds no object, or is not antipodal
        """
        if cloud.normals is None:
            raise ValueError("Antipodal scoring needs a point cloud with normals")

        points, alignment = self.local_points(candidate, cloud, index)
        top = self.hand.hand_depth

        if self.finger_hand.collides(points, 0.0, top):
            return None

        inside = self.finger_hand.closing_region(points, 0.0, top)
        if np.count_nonzero(inside) < 2:
            return None

        ys = points[inside, 1]
        alignment = alignment[inside]
        y_min, y_max = ys.min(), ys.max()
        width = float(y_max - y_min)
        if width <= 0 or width > self.hand.outer_diameter:
            return None

        threshold = self.scoring.contact_threshold
        left = ys <= y_min + threshold
        right = ys >= y_max - threshold

        antipodal = self.classify(alignment[left], alignment[right])
        if antipodal is Antipodal.NONE:
            return None

        mean_alignment = 0.5 * (alignment[left].mean() + alignment[right].mean())
        score = grasp_score(mean_alignment, ys.mean(), width, self.hand, self.scoring)

        return ScoredGrasp(
            candidate=replace(candidate, width=width),
            score=score,
            antipodal=antipodal
        )

    def score_candidates(
        self,
        candidates: List[GraspCandidate],
        cloud: PointCloud,
        index: SpatialIndex
    ) -> List[ScoredGrasp]:
        """
        Score candidates and keep the full and half antipodal ones.

        Args:
            candidates: Raw grasp candidates
            cloud: Point cloud with normals
            index: Spatial index over the cloud

        Returns:
            Surviving scored grasps in unspecified order
        """
        def evaluate(candidate: GraspCandidate) -> List[ScoredGrasp]:
            scored = self.score(candidate, cloud, index)
            return [] if scored is None else [scored]

        grasps = parallel_map(evaluate, candidates, self.num_threads)
        logger.debug("%d of %d candidates are antipodal", len(grasps), len(candidates))
        return grasps

    def reevaluate(
        self,
        grasps: List[ScoredGrasp],
        cloud: PointCloud,
        index: SpatialIndex
    ) -> List[ScoredGrasp]:
        """
        Re-run scoring of already scored grasps against another cloud.

        Grasp poses are kept; width, score and classification are recomputed.
        Grasps that fail are dropped.

        Args:
            grasps: Scored grasps
            cloud: Point cloud with normals, usually the original dense cloud
            index: Spatial index over the cloud

        Returns:
            Re-evaluated grasps in unspecified order
        """
        survivors = self.score_candidates([g.candidate for g in grasps], cloud, index)
        logger.debug("%d of %d grasps survived re-evaluation", len(survivors), len(grasps))
        return survivors
