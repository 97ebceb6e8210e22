"""
Grasp Candidate Generation

A modular pipeline that turns a raw point cloud into scored two-finger grasp
candidates: preprocessing, local frame estimation, parallel hand search,
antipodal scoring and re-evaluation on the original cloud.
"""

from .antipodal import AntipodalScorer, grasp_score
from .config import (
    HandGeometry,
    PipelineConfig,
    PreprocessConfig,
    ScoringConfig,
    SearchConfig,
    Workspace,
)
from .errors import ConfigError, EmptyCloudError, EmptyInputError, GraspGenerationError
from .grasp import Antipodal, GraspCandidate, ScoredGrasp
from .hand_search import FingerHand, HandSearchSampler
from .local_frames import LocalFrame, LocalFrameEstimator
from .pipeline import GraspCandidatePipeline, PipelineStats, analyze_results, generate_grasps
from .point_cloud import PointCloud
from .preprocessing import PointCloudPreprocessor, estimate_normals
from .spatial_index import SpatialIndex

__version__ = "1.0.0"

__all__ = [
    "Antipodal",
    "AntipodalScorer",
    "ConfigError",
    "EmptyCloudError",
    "EmptyInputError",
    "FingerHand",
    "GraspCandidate",
    "GraspCandidatePipeline",
    "GraspGenerationError",
    "HandGeometry",
    "HandSearchSampler",
    "LocalFrame",
    "LocalFrameEstimator",
    "PipelineConfig",
    "PipelineStats",
    "PointCloud",
    "PointCloudPreprocessor",
    "PreprocessConfig",
    "ScoredGrasp",
    "ScoringConfig",
    "SearchConfig",
    "SpatialIndex",
    "Workspace",
    "analyze_results",
    "estimate_normals",
    "generate_grasps",
    "grasp_score"
]
