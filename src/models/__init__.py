"""
Typed models for the object detector viewer.

These models provide strong typing and validation for frames, detections,
history entries, settings and configuration.
"""

from .frame import FrameData
from .detection import Detection, BoundingBox, filter_by_threshold
from .history import HistoryEntry
from .settings import ViewerSettings
from .config import (
    Config,
    CameraConfig,
    DetectionConfig,
    YoloConfig,
    SchedulerConfig,
    ViewerConfig,
    HistoryConfig,
    SnapshotConfig,
    WebConfig,
)

__all__ = [
    # Frame
    "FrameData",
    # Detection
    "Detection",
    "BoundingBox",
    "filter_by_threshold",
    # History
    "HistoryEntry",
    # Settings
    "ViewerSettings",
    # Config
    "Config",
    "CameraConfig",
    "DetectionConfig",
    "YoloConfig",
    "SchedulerConfig",
    "ViewerConfig",
    "HistoryConfig",
    "SnapshotConfig",
    "WebConfig",
]
