"""
Observation layer for pluggable camera sources.

This layer abstracts the source of frames (webcam, video file) from the
detection loop. Each source implements the ObservationSource interface and
returns FrameData objects.
"""

from typing import Optional

from models.config import CameraConfig
from .base import ObservationSource, ObservationConfig
from .opencv_source import OpenCVSource, OpenCVSourceConfig


def create_source_from_config(camera_cfg: CameraConfig, facing: Optional[str] = None) -> ObservationSource:
    """
    Build an (unopened) observation source for a camera facing.

    Args:
        camera_cfg: Typed camera configuration.
        facing: "front" or "back"; defaults to camera_cfg.facing.
    """
    if camera_cfg.backend != "opencv":
        raise ValueError(f"Unsupported camera backend: {camera_cfg.backend}")
    return OpenCVSource(OpenCVSourceConfig.from_camera_config(camera_cfg, facing))


__all__ = [
    "ObservationSource",
    "ObservationConfig",
    "OpenCVSource",
    "OpenCVSourceConfig",
    "create_source_from_config",
]
