"""
Grasp Candidate Pipeline Module

This module orchestrates the complete grasp candidate generation pipeline.
It integrates point cloud preprocessing, local frame estimation, the
parallel hand search, antipodal scoring and a re-evaluation pass against
the original, non-downsampled point cloud.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from .antipodal import AntipodalScorer
from .config import PipelineConfig
from .errors import ConfigError
from .grasp import GraspCandidate, ScoredGrasp
from .hand_search import HandSearchSampler
from .local_frames import MIN_NEIGHBORS, LocalFrameEstimator
from .point_cloud import PointCloud
from .preprocessing import PointCloudPreprocessor, estimate_normals
from .spatial_index import SpatialIndex

logger = logging.getLogger(__name__)


@dataclass
class PipelineStats:
    """Counts collected during one pipeline run."""

    raw_points: int = 0
    preprocessed_points: int = 0
    samples: int = 0
    frames: int = 0
    skipped_samples: int = 0
    candidates: int = 0
    antipodal: int = 0
    reevaluated: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class GraspCandidatePipeline:
    """
    Complete grasp candidate generator.

    Stages run strictly one after another: preprocess, estimate frames,
    search hands, score, re-evaluate. Only the hand search and the scoring
    stages use worker threads.
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        """
        Initialize the pipeline.

        Args:
            config: Pipeline configuration (uses defaults if None)

        Raises:
            ConfigError: If any parameter is invalid
        """
        self.config = config or PipelineConfig()
        self.config.validate()

        self.preprocessor = PointCloudPreprocessor(self.config.preprocess)
        self.frame_estimator = LocalFrameEstimator(self.config.search.nn_radius_frames)
        self.hand_search = HandSearchSampler(self.config.hand, self.config.search)
        self.scorer = AntipodalScorer(self.config.hand, self.config.scoring, self.config.search)
        self.last_stats: Optional[PipelineStats] = None

    def make_cloud(self, points) -> PointCloud:
        """Wrap an (N, 3+) array into a cloud seen from the configured view point."""
        return PointCloud.from_array(points, view_points=self.config.view_point)

    def prepare(self, cloud: PointCloud) -> Tuple[PointCloud, SpatialIndex]:
        """
        Attach normals to a cloud and index it.

        Returns:
            Tuple of (cloud with normals, spatial index)
        """
        cloud = estimate_normals(cloud, self.config.search.nn_radius_frames)
        return cloud, SpatialIndex(cloud)

    def generate_candidates(
        self,
        cloud: PointCloud,
        index: SpatialIndex,
        stats: Optional[PipelineStats] = None
    ) -> List[GraspCandidate]:
        """
        Select samples, estimate their frames and run the hand search.

        Args:
            cloud: Preprocessed point cloud
            index: Spatial index over the cloud
            stats: Optional statistics to update

        Returns:
            Raw grasp candidates in unspecified order
        """
        search = self.config.search
        stats = stats or PipelineStats()

        num_samples = search.num_samples
        if num_samples > len(cloud):
            logger.warning(
                "Only %d points left after preprocessing, reducing samples from %d",
                len(cloud), num_samples
            )
            num_samples = len(cloud)

        samples = self.frame_estimator.select_samples(cloud, num_samples, search.seed)
        frames, skipped = self.frame_estimator.calculate_frames(cloud, index, samples)
        stats.samples = len(samples)
        stats.frames = len(frames)
        stats.skipped_samples = skipped

        candidates = self.hand_search.search(cloud, index, frames)
        stats.candidates = len(candidates)
        return candidates

    def reevaluate(
        self,
        grasps: List[ScoredGrasp],
        cloud: PointCloud,
        index: Optional[SpatialIndex] = None
    ) -> List[ScoredGrasp]:
        """
        Re-score grasps against a higher fidelity cloud.

        Args:
            grasps: Scored grasps
            cloud: Reference cloud, with or without normals
            index: Spatial index over `cloud` (built if None)

        Returns:
            Grasps that are still antipodal, with recomputed width and score
        """
        if cloud.normals is None or index is None:
            cloud, index = self.prepare(cloud)
        return self.scorer.reevaluate(grasps, cloud, index)

    def run(self, cloud: PointCloud) -> List[ScoredGrasp]:
        """
        Run the complete pipeline on a raw point cloud.

        Args:
            cloud: Raw point cloud

        Returns:
            Re-evaluated grasps in unspecified order; empty if nothing was
            found

        Raises:
            ConfigError: If more samples are requested than the cloud has points
            EmptyInputError: If the cloud is empty or becomes empty while
                preprocessing
        """
        stats = PipelineStats(raw_points=len(cloud))
        self.last_stats = stats

        if self.config.search.num_samples > len(cloud):
            raise ConfigError(
                f"num_samples ({self.config.search.num_samples}) exceeds the "
                f"number of input points ({len(cloud)})"
            )

        processed = self.preprocessor.preprocess(cloud)
        stats.preprocessed_points = len(processed)
        if len(processed) < MIN_NEIGHBORS:
            logger.warning("Only %d points left after preprocessing, no grasps possible",
                           len(processed))
            return []

        processed, index = self.prepare(processed)
        candidates = self.generate_candidates(processed, index, stats)
        if not candidates:
            logger.info("Hand search found no candidates")
            return []

        grasps = self.scorer.score_candidates(candidates, processed, index)
        stats.antipodal = len(grasps)
        if not grasps:
            return []

        reference = self.preprocessor.crop_to_workspace(cloud)
        grasps = self.reevaluate(grasps, reference)
        stats.reevaluated = len(grasps)

        logger.info(
            "Generated %d grasps (%d candidates, %d antipodal) from %d points",
            len(grasps), stats.candidates, stats.antipodal, stats.raw_points
        )
        return grasps


def generate_grasps(
    points,
    config: Union[PipelineConfig, Dict, None] = None,
    seed: Optional[int] = None
) -> List[ScoredGrasp]:
    """
    Generate grasps for a point cloud.

    Args:
        points: Array-like of shape (N, >=3); extra columns are ignored
        config: Pipeline configuration, nested dictionary of parameters, or
            None for defaults
        seed: Seed for sample selection (overrides the configured seed)

    Returns:
        Full and half antipodal grasps in unspecified order

    Raises:
        ConfigError: On invalid parameters or malformed input
        EmptyInputError: If no usable points remain
    """
    if config is None:
        config = PipelineConfig()
    elif isinstance(config, dict):
        config = PipelineConfig.from_dict(config)
    if seed is not None:
        config = config.with_seed(seed)

    pipeline = GraspCandidatePipeline(config)
    return pipeline.run(pipeline.make_cloud(points))


def analyze_results(grasps: List[ScoredGrasp]) -> Dict:
    """
    Summarize a list of grasps.

    Args:
        grasps: Scored grasps

    Returns:
        Dictionary with analysis statistics
    """
    if not grasps:
        return {
            'total_grasps': 0,
            'full_count': 0,
            'half_count': 0,
            'full_percentage': 0.0,
            'half_percentage': 0.0,
            'mean_score': 0.0,
            'max_score': 0.0,
            'mean_width': 0.0
        }

    full_count = sum(1 for g in grasps if g.is_full_antipodal())
    half_count = sum(1 for g in grasps if g.is_half_antipodal())
    scores = np.array([g.score for g in grasps])
    widths = np.array([g.width for g in grasps])

    return {
        'total_grasps': len(grasps),
        'full_count': full_count,
        'half_count': half_count,
        'full_percentage': full_count / len(grasps) * 100,
        'half_percentage': half_count / len(grasps) * 100,
        'mean_score': float(scores.mean()),
        'max_score': float(scores.max()),
        'mean_width': float(widths.mean())
    }
