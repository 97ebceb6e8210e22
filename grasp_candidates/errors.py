"""
Error Types

Fatal errors raised by the grasp candidate pipeline. Per-sample and
per-candidate rejections are not errors; they are absorbed by the stage
that produces them.
"""


class GraspGenerationError(Exception):
    """Base class for all fatal pipeline errors."""


class ConfigError(GraspGenerationError, ValueError):
    """Invalid configuration parameter or malformed input array."""


class EmptyInputError(GraspGenerationError):
    """The point cloud holds no usable points."""


class EmptyCloudError(EmptyInputError):
    """The point cloud became empty during a preprocessing step."""

    def __init__(self, step: str):
        super().__init__(f"Point cloud is empty after {step}")
        self.step = step
