"""
Command line entry point.

Usage:
    python -m grasp_candidates cloud.ply [--view-point X Y Z] [--seed S]

Reads a point cloud (any format Open3D reads, or an (N, 3+) .npy array),
generates grasps and prints one line per grasp, best first.
"""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import numpy as np
import open3d as o3d

from .config import PipelineConfig, Workspace
from .errors import GraspGenerationError
from .logging_config import setup_logging
from .pipeline import GraspCandidatePipeline, analyze_results

logger = logging.getLogger(__name__)


def load_points(path: str) -> np.ndarray:
    """Load an (N, 3) point array from a .npy file or an Open3D point cloud file."""
    if Path(path).suffix == ".npy":
        return np.load(path)
    pcd = o3d.io.read_point_cloud(path)
    return np.asarray(pcd.points)


def build_config(args: argparse.Namespace) -> PipelineConfig:
    config = PipelineConfig()
    search = replace(
        config.search,
        num_samples=args.num_samples,
        num_threads=args.num_threads,
        num_orientations=args.num_orientations,
        seed=args.seed
    )
    preprocess = replace(
        config.preprocess,
        voxel_size=args.voxel_size,
        workspace=Workspace.from_sequence(args.workspace) if args.workspace else None
    )
    view_point = tuple(args.view_point) if args.view_point else None
    return replace(config, search=search, preprocess=preprocess, view_point=view_point)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Generate grasp candidates for a point cloud")
    parser.add_argument("path", help="Point cloud file (.ply, .pcd, .xyz, ... or .npy)")
    parser.add_argument("--view-point", nargs=3, type=float, metavar=("X", "Y", "Z"),
                        help="Camera position the cloud was captured from")
    parser.add_argument("--workspace", nargs=6, type=float,
                        metavar=("XMIN", "XMAX", "YMIN", "YMAX", "ZMIN", "ZMAX"),
                        help="Crop box applied before processing")
    parser.add_argument("--num-samples", type=int, default=160)
    parser.add_argument("--num-orientations", type=int, default=16)
    parser.add_argument("--num-threads", type=int, default=20)
    parser.add_argument("--voxel-size", type=float, default=0.003)
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--log-level", default="WARNING")
    parser.add_argument("--log-file", default=None)
    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.log_file)

    try:
        pipeline = GraspCandidatePipeline(build_config(args))
        cloud = pipeline.make_cloud(load_points(args.path))
        grasps = pipeline.run(cloud)
    except GraspGenerationError as exc:
        logger.error("Grasp generation failed: %s", exc)
        return 1

    summary = analyze_results(grasps)
    print(f"{summary['total_grasps']} grasps "
          f"({summary['full_count']} full, {summary['half_count']} half antipodal)")

    for grasp in sorted(grasps, key=lambda g: g.score, reverse=True):
        label = "full" if grasp.is_full_antipodal() else "half"
        bottom = np.array2string(grasp.bottom, precision=4)
        approach = np.array2string(grasp.approach, precision=3)
        print(f"  score={grasp.score:.3f} width={grasp.width:.4f} {label:4s} "
              f"bottom={bottom} approach={approach}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
